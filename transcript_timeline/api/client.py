"""Async HTTP client for the external editor backend.

WHY: Transcription and re-synthesis run on an external backend. The
editor needs to request a transcript for an uploaded audio, submit the
reconciled selections for rendering, and wait until the rendered audio
is actually stored. This module hides that HTTP workflow behind one
client class so the session, CLI and tests don't deal with requests.

HOW: Uses httpx.AsyncClient with bearer auth. The client is an async
context manager. Each backend step is a method:
request_transcription → request_audio_edit → poll_for_final_audio.

RULES:
- Always use the async context manager (async with EditorBackendClient() as client:)
- Non-2xx responses raise BackendAPIError
- poll_for_final_audio is a bounded loop: fixed interval, hard timeout,
  injected clock and sleep; it raises FinalAudioTimeoutError on timeout
- A failing poll response counts as "not ready yet", not as an error
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from transcript_timeline.api.models import AudioEditRequest, AudioRecord, TranscriptionResult
from transcript_timeline.config import (
    EDITOR_API_BASE_URL,
    FINAL_AUDIO_POLL_INTERVAL_S,
    FINAL_AUDIO_POLL_TIMEOUT_S,
    load_api_token,
)

logger = logging.getLogger(__name__)


class BackendAPIError(Exception):
    """Raised when the editor backend returns an error response.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Editor backend error {status_code}: {message}")


class FinalAudioTimeoutError(TimeoutError):
    """Raised when the rendered audio is not stored within the poll timeout.

    RULES:
    - audio_id and elapsed_s are always set
    """

    def __init__(self, audio_id: str, elapsed_s: float, timeout_s: float) -> None:
        self.audio_id = audio_id
        self.elapsed_s = elapsed_s
        super().__init__(
            f"Audio {audio_id} not ready after {elapsed_s:.0f}s (limit: {timeout_s:.0f}s)"
        )


class EditorBackendClient:
    """Async client for the editor backend.

    RULES:
    - Use as: async with EditorBackendClient() as client: ...
    - api_token defaults to load_api_token() from .env
    - base_url defaults to EDITOR_API_BASE_URL from config
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_token: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_token = api_token or load_api_token()
        self._base_url = (base_url or EDITOR_API_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> EditorBackendClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_token}"},
            timeout=httpx.Timeout(120.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "EditorBackendClient must be used as an async context manager: "
                "async with EditorBackendClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def request_transcription(self, audio_id: str) -> TranscriptionResult:
        """Ask the backend to transcribe a stored audio and return its chunks.

        RULES:
        - Blocks until the backend answers (the backend call is synchronous)
        - transcript_chunks is None when the backend returned nothing usable
        - Raises BackendAPIError on non-2xx responses
        """
        client = self._ensure_client()
        resp = await client.post("/stt", json={"audio_id": audio_id})
        if resp.status_code not in (200, 201):
            raise BackendAPIError(resp.status_code, resp.text)

        data = resp.json()
        data.setdefault("audio_id", audio_id)
        result = TranscriptionResult.from_dict(data)
        logger.info(
            "Transcription for %s returned %d chunks",
            audio_id, len(result.transcript_chunks or []),
        )
        return result

    async def fetch_audio(self, audio_id: str) -> AudioRecord:
        client = self._ensure_client()
        resp = await client.get(f"/audios/{audio_id}")
        if resp.status_code != 200:
            raise BackendAPIError(resp.status_code, resp.text)
        return AudioRecord.from_dict(resp.json())

    # ------------------------------------------------------------------
    # Re-synthesis
    # ------------------------------------------------------------------

    async def request_audio_edit(self, request: AudioEditRequest) -> str:
        """Submit a render request and return the backend's request id.

        RULES:
        - An empty selection list is rejected before any HTTP call
        - Raises BackendAPIError on non-2xx responses
        """
        if not request.selections:
            raise ValueError("Nothing to render: the request has no selections")

        client = self._ensure_client()
        resp = await client.post("/edit-audio", json=request.to_dict())
        if resp.status_code not in (200, 201, 202):
            raise BackendAPIError(resp.status_code, resp.text)

        request_id = resp.json()["request_id"]
        logger.info(
            "Submitted render %s for audio %s (%d selections)",
            request_id, request.audio_id, len(request.selections),
        )
        return request_id

    async def poll_for_final_audio(
        self,
        audio_id: str,
        timeout_s: float = FINAL_AUDIO_POLL_TIMEOUT_S,
        interval_s: float = FINAL_AUDIO_POLL_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AudioRecord:
        """Wait until a rendered audio version has a real stored path.

        WHY: The render job reports success before the output file is
        stored; until then the audio row points at a placeholder path.

        HOW: Fetches the audio row every interval_s seconds until it is
        ready or timeout_s has elapsed. Time comes from `clock` and waits
        go through `sleep`, so tests can run it without real timers.

        RULES:
        - Returns the first AudioRecord whose is_ready is True
        - BackendAPIError during a poll is logged and retried
        - Raises FinalAudioTimeoutError once elapsed >= timeout_s
        """
        started = clock()
        while True:
            elapsed = clock() - started
            if elapsed >= timeout_s:
                raise FinalAudioTimeoutError(audio_id, elapsed, timeout_s)

            try:
                record = await self.fetch_audio(audio_id)
            except BackendAPIError as exc:
                logger.info("Audio %s not available yet: %s", audio_id, exc)
            else:
                if record.is_ready:
                    return record
                logger.info("Waiting for audio %s to be stored...", audio_id)

            await sleep(interval_s)
