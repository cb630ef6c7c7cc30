"""Selection Reconciler: merge freshly derived regions with earlier passes.

WHY: Every keystroke recomputes the changed regions from scratch, but
the user may already have stretched a derived region (duration_delta)
or nudged its bounds. Blindly replacing derived selections would throw
that work away; keeping them would leave stale regions behind. Manual
selections must survive untouched either way.

HOW: Each candidate interval gets a deterministic id built from its
bounds at fixed precision. If the previous pass produced a derived
selection with the same id, that selection is carried forward as-is;
otherwise a fresh derived selection is created. The caller's manual
selections are passed through unchanged in front of the new derived set.

RULES:
- Id format: "auto-{start:.3f}-{end:.3f}"
- Carried-forward selections are returned unchanged (bounds, delta,
  token_ids, is_active)
- New selections: duration_delta=0, is_active=True, no token ids,
  origin=derived
- Output order: candidates' order (time order); duplicates by id are
  emitted once
- Pure: identical inputs give equal outputs; inputs are never mutated
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from transcript_timeline.config import AUTO_ID_DECIMALS, AUTO_ID_PREFIX
from transcript_timeline.core.aligner import align
from transcript_timeline.core.gaps import extract_changed_regions
from transcript_timeline.core.ir import (
    CandidateInterval,
    DisplayToken,
    ReferenceWord,
    Selection,
    SelectionOrigin,
    new_token_id,
)

logger = logging.getLogger(__name__)


def auto_selection_id(start: float, end: float) -> str:
    """Deterministic id of the derived selection covering [start, end]."""
    return "{prefix}-{start:.{d}f}-{end:.{d}f}".format(
        prefix=AUTO_ID_PREFIX, start=start, end=end, d=AUTO_ID_DECIMALS
    )


def partition_selections(
    selections: Iterable[Selection],
) -> tuple[list[Selection], list[Selection]]:
    """Split selections into (manual, derived) by their origin tag."""
    manual: list[Selection] = []
    derived: list[Selection] = []
    for sel in selections:
        if sel.origin is SelectionOrigin.DERIVED:
            derived.append(sel)
        else:
            manual.append(sel)
    return manual, derived


def reconcile(
    candidates: Sequence[CandidateInterval],
    previous_auto: Sequence[Selection],
) -> list[Selection]:
    """Turn candidate intervals into derived selections.

    Args:
        candidates: Intervals from extract_changed_regions(), time-ordered.
        previous_auto: The derived selections produced by the immediately
            preceding pass (possibly adjusted by the user since).

    Returns:
        The complete derived selection set for this pass.
    """
    previous_by_id = {sel.id: sel for sel in previous_auto}
    result: list[Selection] = []
    emitted: set[str] = set()

    for candidate in candidates:
        sel_id = auto_selection_id(candidate.start, candidate.end)
        if sel_id in emitted:
            continue
        emitted.add(sel_id)

        previous = previous_by_id.get(sel_id)
        if previous is not None:
            result.append(previous)
            continue

        result.append(Selection(
            id=sel_id,
            abs_start=candidate.start,
            abs_end=candidate.end,
            duration_delta=0.0,
            token_ids=(),
            is_active=True,
            origin=SelectionOrigin.DERIVED,
        ))

    return result


@dataclass(frozen=True)
class EditResult:
    """Everything one text-change pass produces."""

    tokens: list[DisplayToken] = field(default_factory=list)
    candidates: list[CandidateInterval] = field(default_factory=list)
    selections: list[Selection] = field(default_factory=list)

    @property
    def derived(self) -> list[Selection]:
        return [s for s in self.selections if s.origin is SelectionOrigin.DERIVED]

    def to_dict(self) -> dict:
        return {
            "tokens": [t.to_dict() for t in self.tokens],
            "candidates": [c.to_dict() for c in self.candidates],
            "selections": [s.to_dict() for s in self.selections],
        }


def apply_text_edit(
    edited_text: str,
    reference: Sequence[ReferenceWord],
    selections: Sequence[Selection],
    new_id: Callable[[], str] = new_token_id,
) -> EditResult:
    """Run align -> extract -> reconcile for one text change.

    WHY: This is the operation the editor calls on every text change; it
    owns the partition/replace step so callers cannot forget to keep
    their manual selections.

    HOW: Aligns the text, extracts candidate intervals, partitions the
    current selections by origin, reconciles the derived part, and
    returns manual + new derived.

    RULES:
    - selections is the full current set (manual and derived)
    - The returned selection list is manual (original order) followed by
      the derived set for this pass
    - Passes must be applied in the order the edits happened; the
      derived part of the result is the previous_auto of the next pass
    """
    tokens = align(edited_text, reference, new_id)
    candidates = extract_changed_regions(tokens, reference)
    manual, previous_auto = partition_selections(selections)
    derived = reconcile(candidates, previous_auto)

    logger.debug(
        "Text edit: %d tokens, %d changed regions, %d manual + %d derived selections",
        len(tokens), len(candidates), len(manual), len(derived),
    )
    return EditResult(tokens=tokens, candidates=candidates, selections=manual + derived)
