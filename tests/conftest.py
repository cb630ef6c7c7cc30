"""Shared test fixtures for the transcript_timeline test suite.

WHY: Most test modules need the same small reference transcripts. The
three-word Korean utterance is the canonical editing scenario (keep the
greeting, rewrite the rest); the English one exercises repeated words
and longer edits.

HOW: Raw word records are kept as module constants so tests can feed
them through the parsing path; fixtures return fresh copies and the
built ReferenceWord tuples.

RULES:
- Word timings are hardcoded and non-overlapping
- Records use the canonical {id, word, start, end} shape
- id_factory yields deterministic ids ("t0", "t1", ...) for tests that
  compare whole token lists
"""

import itertools
from typing import Any, Dict, List

import pytest

from transcript_timeline.core.ir import ReferenceWord


# ---------------------------------------------------------------------------
# Sample transcripts
# ---------------------------------------------------------------------------

KOREAN_RECORDS: List[Dict[str, Any]] = [
    {"id": "w1", "word": "안녕", "start": 0.0, "end": 0.5},
    {"id": "w2", "word": "하세요", "start": 0.5, "end": 1.0},
    {"id": "w3", "word": "반갑습니다", "start": 1.0, "end": 1.8},
]

ENGLISH_RECORDS: List[Dict[str, Any]] = [
    {"id": "e1", "word": "the", "start": 0.0, "end": 0.2},
    {"id": "e2", "word": "quick", "start": 0.25, "end": 0.6},
    {"id": "e3", "word": "brown", "start": 0.6, "end": 0.9},
    {"id": "e4", "word": "fox", "start": 1.0, "end": 1.3},
    {"id": "e5", "word": "jumps", "start": 1.4, "end": 1.8},
    {"id": "e6", "word": "over", "start": 1.8, "end": 2.0},
    {"id": "e7", "word": "the", "start": 2.0, "end": 2.1},
    {"id": "e8", "word": "dog", "start": 2.2, "end": 2.6},
]


def _words(records: List[Dict[str, Any]]):
    return tuple(
        ReferenceWord(id=r["id"], text=r["word"], start=r["start"], end=r["end"])
        for r in records
    )


@pytest.fixture
def korean_records():
    """Canonical records for "안녕 하세요 반갑습니다"."""
    return [dict(r) for r in KOREAN_RECORDS]


@pytest.fixture
def korean_reference():
    return _words(KOREAN_RECORDS)


@pytest.fixture
def english_records():
    return [dict(r) for r in ENGLISH_RECORDS]


@pytest.fixture
def english_reference():
    """ReferenceWords for "the quick brown fox jumps over the dog"."""
    return _words(ENGLISH_RECORDS)


@pytest.fixture
def id_factory():
    """Deterministic token id factory: "t0", "t1", ..."""
    counter = itertools.count()
    return lambda: "t{}".format(next(counter))
