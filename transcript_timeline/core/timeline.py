"""Duration-Delta Timeline Model: value math and clamped drag edits.

WHY: A selection asks the re-synthesis backend to render its span with a
different length (duration_delta). The preview player needs the matching
playback rate, and timeline drags must never leave a selection with
inverted bounds or a zero/negative target length.

HOW: Pure functions over Selection. Every edit returns a new Selection
built with dataclasses.replace(); out-of-range requests are clamped at
the boundary instead of raising.

RULES:
- target_duration = max(MIN_TARGET_DURATION_S, span + duration_delta)
- playback_rate = span / target_duration (preview only)
- duration_delta is clamped to >= -span + MIN_TARGET_DURATION_S
- Bound drags keep abs_start >= 0 and abs_end - abs_start >= MIN_SELECTION_SPAN_S
- A bound drag that shrinks the span re-clamps duration_delta
- Moving preserves the span; the start is floored at 0
- Non-finite drag values raise ValueError; clamping never turns NaN
  into a bound
"""

from __future__ import annotations

import enum
import math
from collections.abc import Callable
from dataclasses import replace

from transcript_timeline.config import (
    DEFAULT_MANUAL_SPAN_S,
    MIN_SELECTION_SPAN_S,
    MIN_TARGET_DURATION_S,
)
from transcript_timeline.core.ir import Selection, SelectionOrigin, new_token_id


class DragKind(str, enum.Enum):
    """Timeline handle being dragged."""

    MOVE = "move"
    START = "start"
    END = "end"
    DURATION = "duration"


def target_duration(sel: Selection, min_positive: float = MIN_TARGET_DURATION_S) -> float:
    return max(min_positive, sel.span + sel.duration_delta)


def playback_rate(sel: Selection) -> float:
    """Preview speed that plays the original span in the target duration."""
    return sel.span / target_duration(sel)


def _require_finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise ValueError("{} must be a finite number, got {!r}".format(what, value))
    return value


def clamp_duration_delta(span: float, delta: float) -> float:
    return max(delta, -span + MIN_TARGET_DURATION_S)


def set_duration_delta(sel: Selection, delta: float) -> Selection:
    _require_finite(delta, "duration delta")
    return replace(sel, duration_delta=clamp_duration_delta(sel.span, delta))


def move_selection(sel: Selection, offset: float) -> Selection:
    _require_finite(offset, "move offset")
    span = sel.span
    new_start = max(0.0, sel.abs_start + offset)
    return replace(sel, abs_start=new_start, abs_end=new_start + span)


def resize_start(sel: Selection, new_start: float) -> Selection:
    _require_finite(new_start, "start")
    start = max(0.0, min(new_start, sel.abs_end - MIN_SELECTION_SPAN_S))
    span = sel.abs_end - start
    return replace(
        sel,
        abs_start=start,
        duration_delta=clamp_duration_delta(span, sel.duration_delta),
    )


def resize_end(sel: Selection, new_end: float) -> Selection:
    _require_finite(new_end, "end")
    end = max(new_end, sel.abs_start + MIN_SELECTION_SPAN_S)
    span = end - sel.abs_start
    return replace(
        sel,
        abs_end=end,
        duration_delta=clamp_duration_delta(span, sel.duration_delta),
    )


_DRAG_HANDLERS: dict[DragKind, Callable[[Selection, float], Selection]] = {
    DragKind.MOVE: move_selection,
    DragKind.START: resize_start,
    DragKind.END: resize_end,
    DragKind.DURATION: set_duration_delta,
}


def apply_drag(sel: Selection, kind: DragKind | str, value: float) -> Selection:
    """Apply one timeline drag to a selection.

    RULES:
    - move: value is an offset in seconds
    - start / end: value is the new absolute bound
    - duration: value is the new duration_delta
    - Unknown kinds and non-finite values raise ValueError
    """
    return _DRAG_HANDLERS[DragKind(kind)](sel, value)


def new_manual_selection(
    at: float,
    span: float = DEFAULT_MANUAL_SPAN_S,
    new_id: Callable[[], str] = new_token_id,
) -> Selection:
    """Create a user-drawn selection starting at `at` (floored at 0)."""
    _require_finite(at, "selection start")
    _require_finite(span, "selection span")
    start = max(0.0, at)
    return Selection(
        id=new_id(),
        abs_start=start,
        abs_end=start + max(span, MIN_SELECTION_SPAN_S),
        origin=SelectionOrigin.MANUAL,
    )
