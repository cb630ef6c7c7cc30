"""Word-Timestamp Store: parse, resolve and validate reference transcripts.

WHY: The transcription backend hands back word timings in one of two
loose JSON shapes, sometimes as a JSON string, and the final word's end
is often missing ("open") because the recognizer stops before the audio
does. The alignment core needs a clean, immutable, time-ordered tuple of
ReferenceWord values, and it must never silently repair bad timestamps.

HOW: Raw payloads are checked against a jsonschema, normalized into
canonical records ({id, word, start, end}), open ends are resolved to
the probed audio duration, and the result is built into ReferenceWord
objects with ordering and uniqueness checks.

RULES:
- Accepted shapes: records [{id, word, start, end}] and chunks
  [{text, timestamp: [start, end]}]; either may arrive as a JSON string
- Chunk text is whitespace-trimmed; a null chunk start becomes 0
- Chunk ids are "w{index}-{generation}"; generation defaults to the
  current time in milliseconds so reloads never reuse ids
- A null end is replaced by audio_duration; with no duration it is an error
- Any violation raises MalformedReferenceError with index and word id;
  nothing is clamped, reordered or dropped here
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import jsonschema

from transcript_timeline.core.ir import (
    DisplayToken,
    MalformedReferenceError,
    ReferenceWord,
    new_token_id,
)

_NULLABLE_NUMBER = {"type": ["number", "null"]}

RECORDS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["word", "start", "end"],
        "properties": {
            "id": {"type": ["string", "integer"]},
            "word": {"type": "string"},
            "start": _NULLABLE_NUMBER,
            "end": _NULLABLE_NUMBER,
        },
    },
}
"""Canonical word records, as stored by the editor."""

CHUNKS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["text", "timestamp"],
        "properties": {
            "text": {"type": "string"},
            "timestamp": {
                "type": "array",
                "minItems": 2,
                "maxItems": 2,
                "items": _NULLABLE_NUMBER,
            },
        },
    },
}
"""Word chunks as returned by the transcription backend."""


def parse_transcript_payload(
    payload: str | Sequence[dict[str, Any]],
    generation: str | None = None,
) -> list[dict[str, Any]]:
    """Normalize a raw transcription payload into canonical records.

    WHY: Stored transcripts and fresh backend results use different
    shapes, and the stored column is sometimes a JSON-encoded string.

    HOW: Decodes strings, then validates against CHUNKS_SCHEMA or
    RECORDS_SCHEMA (chunks are tried first since they carry a
    "timestamp" pair). Chunks are converted with chunks_to_records().

    RULES:
    - Returns records with keys id, word, start, end (end may be None)
    - Invalid JSON or a payload matching neither schema raises
      MalformedReferenceError
    - Record ids are coerced to str; missing ids are generated from
      the index and generation like chunk ids
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise MalformedReferenceError("Transcript payload is not valid JSON: {}".format(exc)) from exc

    if not isinstance(payload, list):
        raise MalformedReferenceError(
            "Transcript payload must be a list, got {}".format(type(payload).__name__)
        )

    if payload and isinstance(payload[0], dict) and "timestamp" in payload[0]:
        _validate(payload, CHUNKS_SCHEMA)
        return chunks_to_records(payload, generation=generation)

    _validate(payload, RECORDS_SCHEMA)
    tag = generation or _generation_tag()
    return [
        {
            "id": str(item["id"]) if item.get("id") is not None else "w{}-{}".format(i, tag),
            "word": item["word"],
            "start": item["start"],
            "end": item["end"],
        }
        for i, item in enumerate(payload)
    ]


def chunks_to_records(
    chunks: Sequence[dict[str, Any]],
    generation: str | None = None,
) -> list[dict[str, Any]]:
    """Convert backend chunks ({text, timestamp}) into canonical records.

    RULES:
    - text is stripped of surrounding whitespace
    - timestamp[0] null -> 0.0; timestamp[1] null stays None (open end)
    - ids are "w{index}-{generation}"
    """
    tag = generation or _generation_tag()
    records = []
    for i, chunk in enumerate(chunks):
        start, end = chunk["timestamp"]
        records.append({
            "id": "w{}-{}".format(i, tag),
            "word": chunk["text"].strip(),
            "start": float(start) if start is not None else 0.0,
            "end": float(end) if end is not None else None,
        })
    return records


def resolve_open_ends(
    records: Iterable[dict[str, Any]],
    audio_duration: float | None,
) -> list[dict[str, Any]]:
    """Replace null ends with the audio duration.

    WHY: The recognizer leaves the last word's end open when speech runs
    to the end of the file. The core assumes every end is concrete.

    RULES:
    - Returns new dicts; the input records are not modified
    - audio_duration None with an open end raises MalformedReferenceError
    """
    resolved = []
    for i, record in enumerate(records):
        out = dict(record)
        if out.get("end") is None:
            if audio_duration is None:
                raise MalformedReferenceError(
                    "Word {!r} has an open end and no audio duration is known".format(out.get("id")),
                    index=i,
                    word_id=out.get("id"),
                )
            out["end"] = float(audio_duration)
        resolved.append(out)
    return resolved


def build_reference(
    records: Iterable[dict[str, Any]],
    audio_duration: float | None = None,
) -> tuple[ReferenceWord, ...]:
    """Build the immutable reference word sequence from canonical records.

    WHY: This is the single entry point through which transcription
    results become ReferenceWords; every invariant is checked here so
    the alignment core can trust its input.

    HOW: Resolves open ends, constructs each ReferenceWord (which checks
    0 <= start < end), then runs validate_reference() over the result.

    RULES:
    - The returned tuple preserves input order
    - Errors carry the index of the offending record
    """
    resolved = resolve_open_ends(records, audio_duration)
    words = []
    for i, record in enumerate(resolved):
        word_id = str(record.get("id"))
        start = record.get("start")
        if start is None:
            raise MalformedReferenceError(
                "Word {!r} has no start time".format(word_id), index=i, word_id=word_id
            )
        try:
            words.append(ReferenceWord(
                id=word_id,
                text=str(record["word"]),
                start=float(start),
                end=float(record["end"]),
            ))
        except MalformedReferenceError as exc:
            raise MalformedReferenceError(str(exc), index=i, word_id=word_id) from exc

    validate_reference(words)
    return tuple(words)


def validate_reference(words: Sequence[ReferenceWord]) -> None:
    """Check sequence-level invariants of a reference transcript.

    RULES:
    - ids are unique
    - each word starts no earlier than the previous word ends
      (abutting is allowed, overlap is not)
    """
    seen: set[str] = set()
    prev: ReferenceWord | None = None
    for i, word in enumerate(words):
        if word.id in seen:
            raise MalformedReferenceError(
                "Duplicate word id {!r}".format(word.id), index=i, word_id=word.id
            )
        seen.add(word.id)
        if prev is not None and word.start < prev.end:
            raise MalformedReferenceError(
                "Word {!r} starts at {} before previous word {!r} ends at {}".format(
                    word.id, word.start, prev.id, prev.end
                ),
                index=i,
                word_id=word.id,
            )
        prev = word


def initial_tokens(
    words: Sequence[ReferenceWord],
    new_id: Callable[[], str] = new_token_id,
) -> list[DisplayToken]:
    """One linked, unedited token per reference word."""
    return [DisplayToken(id=new_id(), text=w.text, source_word_ids=(w.id,)) for w in words]


def tokens_to_text(tokens: Iterable[DisplayToken]) -> str:
    return " ".join(t.text for t in tokens)


def _validate(payload: Any, schema: dict[str, Any]) -> None:
    try:
        jsonschema.validate(instance=payload, schema=schema)
    except jsonschema.ValidationError as exc:
        index = exc.absolute_path[0] if exc.absolute_path else None
        raise MalformedReferenceError(
            "Transcript payload does not match schema: {}".format(exc.message),
            index=index if isinstance(index, int) else None,
        ) from exc


def _generation_tag() -> str:
    return str(int(time.time() * 1000))
