"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint pair (request + response) has its own model. Enums
represent closed sets like drag kinds. All models include Field
descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values match core enums exactly (DragKind, SelectionOrigin)
- Response models never expose internal implementation details
- Request floats reject NaN and infinity
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DragKindModel(str, Enum):
    """Timeline handle being dragged.

    RULES:
    - Values match transcript_timeline.core.timeline.DragKind exactly
    """

    move = "move"
    start = "start"
    end = "end"
    duration = "duration"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    """Reference transcript used to open an editing session.

    RULES:
    - transcript is either word records ({id, word, start, end}) or
      backend chunks ({text, timestamp: [start, end]})
    - audio_duration resolves open (null) word ends
    """

    audio_id: Optional[str] = Field(
        default=None,
        description="Identifier of the audio version being edited.",
    )
    transcript: List[Dict[str, Any]] = Field(
        description="Word records or transcription chunks, in time order.",
    )
    audio_duration: Optional[float] = Field(
        default=None,
        ge=0,
        allow_inf_nan=False,
        description="Audio duration in seconds, used for words with an open end.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "audio_id": "a1",
                "transcript": [
                    {"id": "w1", "word": "hello", "start": 0.0, "end": 0.5},
                    {"id": "w2", "word": "world", "start": 0.5, "end": None},
                ],
                "audio_duration": 1.2,
            }
        ]
    }}


class TextUpdateRequest(BaseModel):
    """A new full text for the transcript editor."""

    text: str = Field(description="Complete edited transcript text.")
    revision: Optional[int] = Field(
        default=None,
        description="Monotonic edit counter; stale revisions are ignored.",
    )


class SelectionCreateRequest(BaseModel):
    """A manual selection drawn on the timeline."""

    at: float = Field(ge=0, allow_inf_nan=False, description="Start time in seconds.")
    span: Optional[float] = Field(
        default=None,
        gt=0,
        allow_inf_nan=False,
        description="Length in seconds (default 1.0).",
    )


class SelectionUpdateRequest(BaseModel):
    """A drag on one selection handle, and/or an active-flag change.

    RULES:
    - kind and value must be given together
    """

    kind: Optional[DragKindModel] = Field(
        default=None,
        description="Handle being dragged: move, start, end or duration.",
    )
    value: Optional[float] = Field(
        default=None,
        allow_inf_nan=False,
        description=(
            "move: offset in seconds; start/end: new bound; "
            "duration: new duration delta."
        ),
    )
    is_active: Optional[bool] = Field(default=None, description="Enable or disable the selection.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenModel(BaseModel):
    id: str = Field(description="Token id (fresh per text pass).")
    text: str = Field(description="Token text.")
    source_word_ids: List[str] = Field(description="Linked reference word id, if any.")
    is_edited: bool = Field(description="True when the token links no reference word.")


class SelectionModel(BaseModel):
    id: str = Field(description="Selection id.")
    abs_start: float = Field(description="Start on the reference timeline (s).")
    abs_end: float = Field(description="End on the reference timeline (s).")
    duration_delta: float = Field(description="Requested duration change (s).")
    token_ids: List[str] = Field(description="Associated token ids (may be empty).")
    is_active: bool = Field(description="Whether the selection is enabled.")
    origin: str = Field(description="'manual' or 'derived'.")
    target_duration: float = Field(description="Rendered duration after the delta (s).")
    playback_rate: float = Field(description="Preview playback speed.")


class SessionResponse(BaseModel):
    """Full state of an editing session."""

    id: str = Field(description="Session id.")
    audio_id: Optional[str] = Field(default=None, description="Audio being edited.")
    revision: Optional[int] = Field(default=None, description="Last applied text revision.")
    text: str = Field(description="Current transcript text.")
    tokens: List[TokenModel] = Field(description="Current display tokens.")
    selections: List[SelectionModel] = Field(description="Manual and derived selections.")


class TextUpdateResponse(SessionResponse):
    applied: bool = Field(description="False when the revision was stale and ignored.")


class SelectionPayloadModel(BaseModel):
    abs_start: float = Field(description="Start (s).")
    abs_end: float = Field(description="End (s).")
    duration_delta: float = Field(description="Requested duration change (s).")


class RenderRequestResponse(BaseModel):
    """The request body the re-synthesis backend expects."""

    audio_id: str = Field(description="Audio to re-synthesize.")
    text: str = Field(description="Reconciled transcript text.")
    selections: List[SelectionPayloadModel] = Field(description="Regions to regenerate.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
