"""Gap Extraction: turn unconsumed reference words into changed time regions.

WHY: The re-synthesis backend works on time ranges, not words. Every
reference word that no display token links any more was deleted,
replaced or rewritten, so its audio must be regenerated.

HOW: Collect the ids linked by the tokens (the "kept" set), walk the
reference words in order, and group consecutive words outside the kept
set into runs. Each run becomes one interval from its first word's
start to its last word's end.

RULES:
- A kept word ends the current run and never joins one
- Intervals are maximal, non-overlapping and time-ordered
- No removed words -> no intervals; everything removed -> one interval
  spanning the whole reference
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from transcript_timeline.core.ir import CandidateInterval, DisplayToken, ReferenceWord


def kept_word_ids(tokens: Iterable[DisplayToken]) -> set[str]:
    return {word_id for token in tokens for word_id in token.source_word_ids}


def extract_changed_regions(
    tokens: Sequence[DisplayToken],
    reference: Sequence[ReferenceWord],
) -> list[CandidateInterval]:
    """Return one candidate interval per maximal run of removed words."""
    kept = kept_word_ids(tokens)
    intervals: list[CandidateInterval] = []
    run: list[ReferenceWord] = []

    def _flush() -> None:
        if run:
            intervals.append(CandidateInterval(start=run[0].start, end=run[-1].end))
            run.clear()

    for word in reference:
        if word.id in kept:
            _flush()
        else:
            run.append(word)
    _flush()

    return intervals
