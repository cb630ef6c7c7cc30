"""Editor backend request and response dataclasses.

WHY: The external backend (storage, transcription, re-synthesis) speaks
loose JSON: transcript chunks may come back as an encoded string, the
audio row may point at a placeholder while the render is still being
stored. Typed dataclasses make these shapes explicit at the boundary.

HOW: Each dataclass maps one backend JSON object. Factory methods
(from_dict) parse raw responses; to_dict builds request bodies and the
CLI output.

RULES:
- AudioEditRequest.to_dict uses the backend's camelCase keys
- transcript_chunks is decoded from a JSON string when needed; an
  undecodable string is kept as None
- AudioRecord.is_ready is False while audio_path_url is empty or
  starts with the placeholder prefix
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from transcript_timeline.config import PLACEHOLDER_AUDIO_PREFIX
from transcript_timeline.core.ir import Selection, SelectionEditPayload


def _decode_chunks(value: Any) -> list[dict[str, Any]] | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if isinstance(value, list):
        return value
    return None


@dataclass
class AudioEditRequest:
    """Body of the re-synthesis request.

    RULES:
    - text is the reconciled transcript text (tokens joined by spaces)
    - selections carries only (abs_start, abs_end, duration_delta)
    """

    audio_id: str
    text: str
    selections: list[SelectionEditPayload] = field(default_factory=list)

    @classmethod
    def from_selections(
        cls,
        audio_id: str,
        text: str,
        selections: Sequence[Selection],
    ) -> AudioEditRequest:
        return cls(
            audio_id=audio_id,
            text=text,
            selections=[s.to_payload() for s in selections],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "audioId": self.audio_id,
            "text": self.text,
            "selections": [
                {
                    "absStart": p.abs_start,
                    "absEnd": p.abs_end,
                    "durationDelta": p.duration_delta,
                }
                for p in self.selections
            ],
        }


@dataclass
class AudioRecord:
    """One stored audio version as returned by GET /audios/{id}."""

    audio_id: str
    audio_path_url: str | None = None
    transcript_chunks: list[dict[str, Any]] | None = None
    title: str | None = None
    created_at: str | None = None

    @property
    def is_ready(self) -> bool:
        return bool(self.audio_path_url) and not self.audio_path_url.startswith(
            PLACEHOLDER_AUDIO_PREFIX
        )

    @classmethod
    def from_dict(cls, data: dict) -> AudioRecord:
        return cls(
            audio_id=data["audio_id"],
            audio_path_url=data.get("audio_path_url"),
            transcript_chunks=_decode_chunks(data.get("transcript_chunks")),
            title=data.get("title"),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "audio_id": self.audio_id,
            "audio_path_url": self.audio_path_url,
            "title": self.title,
            "created_at": self.created_at,
            "transcript_chunks": self.transcript_chunks,
        }


@dataclass
class TranscriptionResult:
    """Response of the transcription request."""

    audio_id: str
    transcript_chunks: list[dict[str, Any]] | None = None
    language: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptionResult:
        return cls(
            audio_id=data["audio_id"],
            transcript_chunks=_decode_chunks(data.get("transcript_chunks")),
            language=data.get("language"),
        )
