"""FastAPI application exposing editing sessions over HTTP.

WHY: The transcript editor UI runs in a browser; it needs the
reconciliation engine behind an HTTP API: open a session from a
transcript, push text changes, drag selections, and fetch the render
request to hand to the re-synthesis backend.

HOW: A single FastAPI app over a SessionStore. Every state change goes
through EditingSession, which serializes passes and applies the core
pipeline and timeline clamping. Core errors are mapped to HTTP errors.

RULES:
- Error responses use the ErrorResponse schema
- Unknown session or selection ids -> 404
- Malformed transcripts -> 422; store full -> 429
- A render request with nothing selected or no audio id -> 409
- Selection values the timeline rejects -> 400
- The session store is a module-level singleton, cleaned every 5 minutes
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException, Response

from transcript_timeline import __version__
from transcript_timeline.config import API_HOST, API_PORT
from transcript_timeline.core.ir import MalformedReferenceError, Selection
from transcript_timeline.core.timeline import playback_rate, target_duration
from transcript_timeline.server.models import (
    CreateSessionRequest,
    ErrorResponse,
    HealthResponse,
    RenderRequestResponse,
    SelectionCreateRequest,
    SelectionModel,
    SelectionPayloadModel,
    SelectionUpdateRequest,
    SessionResponse,
    TextUpdateRequest,
    TextUpdateResponse,
    TokenModel,
)
from transcript_timeline.server.sessions import SessionStore
from transcript_timeline.session import EditingSession

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()


async def _periodic_cleanup() -> None:
    """Run session cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Transcript Timeline API",
    description=(
        "Keeps a freely edited transcript and the audio timeline in sync. "
        "Open a session from a word-timestamped transcript, send text "
        "changes, adjust selections, and fetch the re-synthesis request."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Session or selection not found"}}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_session_or_404(session_id: str) -> EditingSession:
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return session


def _selection_to_model(sel: Selection) -> SelectionModel:
    return SelectionModel(
        id=sel.id,
        abs_start=sel.abs_start,
        abs_end=sel.abs_end,
        duration_delta=sel.duration_delta,
        token_ids=list(sel.token_ids),
        is_active=sel.is_active,
        origin=sel.origin.value,
        target_duration=target_duration(sel),
        playback_rate=playback_rate(sel),
    )


def _session_to_response(session: EditingSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        audio_id=session.audio_id,
        revision=session.revision,
        text=session.text,
        tokens=[
            TokenModel(
                id=t.id,
                text=t.text,
                source_word_ids=list(t.source_word_ids),
                is_edited=t.is_edited,
            )
            for t in session.tokens
        ],
        selections=[_selection_to_model(s) for s in session.selections],
    )


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Open an editing session",
    responses={
        422: {"model": ErrorResponse, "description": "Malformed transcript"},
        429: {"model": ErrorResponse, "description": "Too many concurrent sessions"},
    },
)
async def create_session(body: CreateSessionRequest) -> SessionResponse:
    try:
        session = session_store.create_session()
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    try:
        session.load_payload(body.transcript, audio_id=body.audio_id, audio_duration=body.audio_duration)
    except MalformedReferenceError as exc:
        logger.info("Rejected transcript for session %s: %s", session.id, exc)
        session_store.delete_session(session.id)
        raise HTTPException(status_code=422, detail="Malformed transcript: {}".format(exc))

    return _session_to_response(session)


@app.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Get session state",
    responses=_NOT_FOUND,
)
async def get_session(session_id: str) -> SessionResponse:
    return _session_to_response(_get_session_or_404(session_id))


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Close a session",
    responses=_NOT_FOUND,
)
async def delete_session(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


@app.put(
    "/sessions/{session_id}/text",
    response_model=TextUpdateResponse,
    tags=["sessions"],
    summary="Apply an edited transcript text",
    description=(
        "Aligns the text against the reference words, derives the changed "
        "regions and reconciles them with the existing selections. Manual "
        "selections are kept; derived ones are replaced, carrying forward "
        "adjustments for regions that did not change."
    ),
    responses=_NOT_FOUND,
)
async def update_text(session_id: str, body: TextUpdateRequest) -> TextUpdateResponse:
    session = _get_session_or_404(session_id)
    applied = session.apply_text(body.text, revision=body.revision)
    state = _session_to_response(session)
    return TextUpdateResponse(applied=applied, **state.model_dump())


# ---------------------------------------------------------------------------
# Endpoints: Selections
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/{session_id}/selections",
    response_model=SelectionModel,
    status_code=201,
    tags=["selections"],
    summary="Add a manual selection",
    responses={
        **_NOT_FOUND,
        400: {"model": ErrorResponse, "description": "Selection out of range"},
    },
)
async def create_selection(session_id: str, body: SelectionCreateRequest) -> SelectionModel:
    session = _get_session_or_404(session_id)
    try:
        sel = session.add_selection(body.at, body.span)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _selection_to_model(sel)


@app.patch(
    "/sessions/{session_id}/selections/{selection_id}",
    response_model=SelectionModel,
    tags=["selections"],
    summary="Drag a selection handle",
    description=(
        "Moves or resizes a selection, or changes its duration delta. "
        "Values outside the allowed range are clamped."
    ),
    responses={
        **_NOT_FOUND,
        400: {"model": ErrorResponse, "description": "Incomplete or out-of-range drag"},
    },
)
async def update_selection(
    session_id: str,
    selection_id: str,
    body: SelectionUpdateRequest,
) -> SelectionModel:
    session = _get_session_or_404(session_id)
    if (body.kind is None) != (body.value is None):
        raise HTTPException(status_code=400, detail="kind and value must be given together")

    try:
        sel = session.get_selection(selection_id)
        if sel is None:
            raise KeyError(selection_id)
        if body.kind is not None:
            sel = session.update_selection(selection_id, body.kind.value, body.value)
        if body.is_active is not None:
            sel = session.set_active(selection_id, body.is_active)
    except KeyError:
        raise HTTPException(
            status_code=404, detail="Selection not found: {}".format(selection_id)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _selection_to_model(sel)


@app.delete(
    "/sessions/{session_id}/selections/{selection_id}",
    status_code=204,
    tags=["selections"],
    summary="Delete a selection",
    responses=_NOT_FOUND,
)
async def delete_selection(session_id: str, selection_id: str) -> Response:
    session = _get_session_or_404(session_id)
    if not session.delete_selection(selection_id):
        raise HTTPException(
            status_code=404, detail="Selection not found: {}".format(selection_id)
        )
    return Response(status_code=204)


@app.get(
    "/sessions/{session_id}/render-request",
    response_model=RenderRequestResponse,
    tags=["selections"],
    summary="Build the re-synthesis request",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Nothing to render"},
    },
)
async def get_render_request(session_id: str) -> RenderRequestResponse:
    session = _get_session_or_404(session_id)
    try:
        request = session.render_request()
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    selections: List[SelectionPayloadModel] = [
        SelectionPayloadModel(
            abs_start=p.abs_start,
            abs_end=p.abs_end,
            duration_delta=p.duration_delta,
        )
        for p in request.selections
    ]
    return RenderRequestResponse(audio_id=request.audio_id, text=request.text, selections=selections)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: str = API_HOST, port: int = API_PORT) -> None:
    """Entry point for the transcript-timeline-api console script."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)
