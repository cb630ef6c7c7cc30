"""Reconciliation core: data model, alignment, gap extraction, reconciliation.

WHY: This package is the stable heart of the editor — the pure functions
that keep transcript text and timeline selections consistent. Everything
else (session, HTTP API, CLI, backend client) is a caller of it.

HOW: ir.py defines the records, reference.py builds reference words,
aligner.py / gaps.py / reconciler.py form the text-edit pipeline, and
timeline.py holds the duration-delta math and drag clamping.

RULES:
- No I/O, no global state, no threads in this package
- Functions receive inputs by value and return new values
- IR dataclasses are the contract — change with care
"""

from transcript_timeline.core.aligner import align
from transcript_timeline.core.gaps import extract_changed_regions
from transcript_timeline.core.ir import (
    CandidateInterval,
    DisplayToken,
    MalformedReferenceError,
    ReferenceWord,
    Selection,
    SelectionEditPayload,
    SelectionOrigin,
)
from transcript_timeline.core.reconciler import (
    EditResult,
    apply_text_edit,
    auto_selection_id,
    partition_selections,
    reconcile,
)
from transcript_timeline.core.reference import build_reference, initial_tokens, tokens_to_text

__all__ = [
    "CandidateInterval",
    "DisplayToken",
    "EditResult",
    "MalformedReferenceError",
    "ReferenceWord",
    "Selection",
    "SelectionEditPayload",
    "SelectionOrigin",
    "align",
    "apply_text_edit",
    "auto_selection_id",
    "build_reference",
    "extract_changed_regions",
    "initial_tokens",
    "partition_selections",
    "reconcile",
    "tokens_to_text",
]
