"""Intermediate representation dataclasses for the reconciliation core.

WHY: The alignment, gap extraction and reconciliation steps hand values
to each other and to the outer layers (session, HTTP API, CLI, render
request builder). A single set of well-typed, immutable records keeps
those hand-offs explicit and makes "the core never mutates its inputs"
something the type system helps enforce.

HOW: Frozen dataclasses form a small vocabulary:
  ReferenceWord         — one timestamped word from a transcription pass
  DisplayToken          — one unit of the edited text, linked to <= 1 word
  CandidateInterval     — a changed region found by gap extraction
  Selection             — a timeline interval, manual or derived
  SelectionEditPayload  — the (start, end, delta) triple sent for rendering

RULES:
- All times are float seconds on the reference (original audio) timeline
- ReferenceWord rejects non-finite times, start < 0 and start >= end
- DisplayToken.is_edited is derived: True iff it links no reference word
- Selection provenance lives in Selection.origin, never in the id string
- Selection rejects abs_start >= abs_end and non-positive target duration
"""

from __future__ import annotations

import enum
import math
import uuid
from dataclasses import dataclass
from typing import Any


def new_token_id() -> str:
    """Fresh opaque id for a display token or manual selection."""
    return uuid.uuid4().hex


class MalformedReferenceError(ValueError):
    """Raised when reference words violate the timestamp invariants.

    WHY: The core must not silently repair timestamps. The caller decides
    whether to drop the offending entry or abort the whole load, so the
    error carries enough context to do either.

    RULES:
    - index is the position of the offending entry in the input, or None
    - word_id is the offending word's id when known, else None
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        word_id: str | None = None,
    ) -> None:
        self.index = index
        self.word_id = word_id
        super().__init__(message)


@dataclass(frozen=True)
class ReferenceWord:
    """One immutable word of the reference transcript.

    RULES:
    - id: opaque, unique within one transcript generation
    - text: surface form exactly as transcribed (matched byte-exact)
    - start and end are finite, 0 <= start < end
    """

    id: str
    text: str
    start: float
    end: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise MalformedReferenceError(
                "Word {!r} has a non-finite timestamp ({}, {})".format(self.id, self.start, self.end),
                word_id=self.id,
            )
        if self.start < 0:
            raise MalformedReferenceError(
                "Word {!r} starts before 0 ({})".format(self.id, self.start),
                word_id=self.id,
            )
        if self.start >= self.end:
            raise MalformedReferenceError(
                "Word {!r} has start >= end ({} >= {})".format(self.id, self.start, self.end),
                word_id=self.id,
            )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "word": self.text, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class DisplayToken:
    """One whitespace-delimited unit of the currently edited text.

    WHY: The editor shows the user's text, but every unit must remember
    whether it still stands for an original word (and which one) so that
    unconsumed words can be turned into time ranges.

    RULES:
    - id: fresh per alignment pass; not stable across edits
    - source_word_ids: () for inserted/rewritten text, (word_id,) otherwise
    """

    id: str
    text: str
    source_word_ids: tuple[str, ...] = ()

    @property
    def is_edited(self) -> bool:
        return not self.source_word_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "source_word_ids": list(self.source_word_ids),
            "is_edited": self.is_edited,
        }


@dataclass(frozen=True)
class CandidateInterval:
    """Temporal footprint of one maximal run of removed reference words."""

    start: float
    end: float

    def to_dict(self) -> dict[str, float]:
        return {"start": self.start, "end": self.end}


class SelectionOrigin(str, enum.Enum):
    """Who owns a selection.

    RULES:
    - manual: drawn by the user; the reconciler never inspects it
    - derived: produced by the reconciler; replaced on every text edit
    """

    MANUAL = "manual"
    DERIVED = "derived"


@dataclass(frozen=True)
class SelectionEditPayload:
    """The per-selection triple handed to the re-synthesis backend."""

    abs_start: float
    abs_end: float
    duration_delta: float


@dataclass(frozen=True)
class Selection:
    """A time interval on the reference timeline with a duration change request.

    WHY: Both hand-drawn regions and regions derived from text edits end
    up in the same render request, and both can be stretched or squeezed
    via duration_delta. One entity with an explicit origin tag covers both.

    HOW: Instances are immutable; timeline drags and reconciliation
    produce new instances via dataclasses.replace().

    RULES:
    - abs_start, abs_end and duration_delta are finite
    - abs_start >= 0 and abs_start < abs_end
    - (abs_end - abs_start) + duration_delta > 0
    - derived selections use the deterministic auto id of their bounds
    - is_active is carried but not interpreted by the core
    """

    id: str
    abs_start: float
    abs_end: float
    duration_delta: float = 0.0
    token_ids: tuple[str, ...] = ()
    is_active: bool = True
    origin: SelectionOrigin = SelectionOrigin.MANUAL

    def __post_init__(self) -> None:
        for name in ("abs_start", "abs_end", "duration_delta"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(
                    "Selection {!r} has non-finite {} ({})".format(self.id, name, getattr(self, name))
                )
        if self.abs_start < 0:
            raise ValueError(
                "Selection {!r} starts before 0 ({})".format(self.id, self.abs_start)
            )
        if self.abs_start >= self.abs_end:
            raise ValueError(
                "Selection {!r} has abs_start >= abs_end ({} >= {})".format(
                    self.id, self.abs_start, self.abs_end
                )
            )
        if self.span + self.duration_delta <= 0:
            raise ValueError(
                "Selection {!r} has non-positive target duration "
                "(span {} + delta {})".format(self.id, self.span, self.duration_delta)
            )

    @property
    def span(self) -> float:
        return self.abs_end - self.abs_start

    def to_payload(self) -> SelectionEditPayload:
        return SelectionEditPayload(
            abs_start=self.abs_start,
            abs_end=self.abs_end,
            duration_delta=self.duration_delta,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "abs_start": self.abs_start,
            "abs_end": self.abs_end,
            "duration_delta": self.duration_delta,
            "token_ids": list(self.token_ids),
            "is_active": self.is_active,
            "origin": self.origin.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Selection:
        """Parse a Selection from its to_dict() form.

        RULES:
        - id, abs_start, abs_end are required
        - origin defaults to manual; unknown origins raise ValueError
        """
        return cls(
            id=str(data["id"]),
            abs_start=float(data["abs_start"]),
            abs_end=float(data["abs_end"]),
            duration_delta=float(data.get("duration_delta", 0.0)),
            token_ids=tuple(data.get("token_ids") or ()),
            is_active=bool(data.get("is_active", True)),
            origin=SelectionOrigin(data.get("origin", SelectionOrigin.MANUAL.value)),
        )
