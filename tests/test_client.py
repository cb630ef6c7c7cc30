"""Tests for the editor backend client.

WHY: The client is the only code that talks to the transcription and
re-synthesis backend. Request shapes (camelCase render body, bearer
auth) and the bounded final-audio poll must hold without a live backend.

HOW: httpx.MockTransport serves canned responses in-process. The poll
loop gets a fake clock and a fake sleep that advances it, so timeouts
are tested without waiting.
"""

from __future__ import annotations

import asyncio
import json
from typing import Callable, List

import httpx
import pytest

from transcript_timeline.api.client import (
    BackendAPIError,
    EditorBackendClient,
    FinalAudioTimeoutError,
)
from transcript_timeline.api.models import AudioEditRequest, AudioRecord
from transcript_timeline.core.ir import Selection, SelectionEditPayload

BASE_URL = "http://backend.test/v1"


def _run(handler: Callable[[httpx.Request], httpx.Response], action):
    """Run `action(client)` against a client backed by `handler`."""

    async def _go():
        transport = httpx.MockTransport(handler)
        async with EditorBackendClient(api_token="tok", base_url=BASE_URL, transport=transport) as client:
            return await action(client)

    return asyncio.run(_go())


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestClientSetup:

    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("EDITOR_API_TOKEN", raising=False)
        with pytest.raises(ValueError, match="EDITOR_API_TOKEN"):
            EditorBackendClient()

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("EDITOR_API_TOKEN", "from-env")
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"audio_id": "a1", "audio_path_url": "x.wav"})

        async def _go():
            client = EditorBackendClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
            async with client:
                await client.fetch_audio("a1")

        asyncio.run(_go())
        assert seen["auth"] == "Bearer from-env"

    def test_use_outside_context_manager(self):
        client = EditorBackendClient(api_token="tok", base_url=BASE_URL)
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(client.fetch_audio("a1"))


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TestRequestTranscription:

    def test_posts_audio_id_and_parses_string_chunks(self):
        seen = {}
        chunks = [{"text": "안녕", "timestamp": [0.0, 0.5]}]

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={
                "transcript_chunks": json.dumps(chunks, ensure_ascii=False),
                "language": "ko",
            })

        result = _run(handler, lambda c: c.request_transcription("a1"))

        assert seen == {"path": "/v1/stt", "body": {"audio_id": "a1"}, "auth": "Bearer tok"}
        assert result.audio_id == "a1"
        assert result.transcript_chunks == chunks
        assert result.language == "ko"

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(500, text="model crashed")

        with pytest.raises(BackendAPIError) as exc_info:
            _run(handler, lambda c: c.request_transcription("a1"))
        assert exc_info.value.status_code == 500
        assert "model crashed" in exc_info.value.message


# ---------------------------------------------------------------------------
# Re-synthesis
# ---------------------------------------------------------------------------


class TestRequestAudioEdit:

    def test_sends_camel_case_body(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, json={"request_id": "r-1"})

        request = AudioEditRequest.from_selections(
            "a1", "안녕 반가워요",
            [Selection(id="auto-0.500-1.800", abs_start=0.5, abs_end=1.8, duration_delta=0.2)],
        )
        request_id = _run(handler, lambda c: c.request_audio_edit(request))

        assert request_id == "r-1"
        assert seen["path"] == "/v1/edit-audio"
        assert seen["body"] == {
            "audioId": "a1",
            "text": "안녕 반가워요",
            "selections": [{"absStart": 0.5, "absEnd": 1.8, "durationDelta": 0.2}],
        }

    def test_empty_selection_list_rejected_before_http(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"request_id": "r"})

        with pytest.raises(ValueError, match="no selections"):
            _run(handler, lambda c: c.request_audio_edit(AudioEditRequest("a1", "text", [])))
        assert calls == []

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(400, text="bad selection")

        request = AudioEditRequest("a1", "t", [SelectionEditPayload(0.0, 1.0, 0.0)])
        with pytest.raises(BackendAPIError):
            _run(handler, lambda c: c.request_audio_edit(request))


# ---------------------------------------------------------------------------
# Final audio polling
# ---------------------------------------------------------------------------


class TestPollForFinalAudio:

    def test_waits_past_errors_and_placeholders(self):
        responses = [
            httpx.Response(404, text="not found"),
            httpx.Response(200, json={"audio_id": "a2", "audio_path_url": "placeholder/a2.wav"}),
            httpx.Response(200, json={"audio_id": "a2", "audio_path_url": "audios/a2.wav"}),
        ]

        def handler(request):
            assert request.url.path == "/v1/audios/a2"
            return responses.pop(0)

        clock = FakeClock()
        record = _run(handler, lambda c: c.poll_for_final_audio(
            "a2", timeout_s=180, interval_s=2, clock=clock, sleep=clock.sleep,
        ))

        assert record.audio_path_url == "audios/a2.wav"
        assert clock.sleeps == [2, 2]

    def test_times_out(self):
        fetches = []

        def handler(request):
            fetches.append(request)
            return httpx.Response(200, json={"audio_id": "a2", "audio_path_url": "placeholder"})

        clock = FakeClock()
        with pytest.raises(FinalAudioTimeoutError) as exc_info:
            _run(handler, lambda c: c.poll_for_final_audio(
                "a2", timeout_s=5, interval_s=2, clock=clock, sleep=clock.sleep,
            ))

        assert isinstance(exc_info.value, TimeoutError)
        assert exc_info.value.audio_id == "a2"
        assert exc_info.value.elapsed_s == 6
        assert len(fetches) == 3

    def test_ready_immediately(self):
        def handler(request):
            return httpx.Response(200, json={"audio_id": "a2", "audio_path_url": "audios/a2.wav"})

        clock = FakeClock()
        _run(handler, lambda c: c.poll_for_final_audio("a2", clock=clock, sleep=clock.sleep))
        assert clock.sleeps == []


class TestAudioRecord:

    @pytest.mark.parametrize("path, ready", [
        (None, False),
        ("", False),
        ("placeholder", False),
        ("placeholder/a1.wav", False),
        ("audios/a1.wav", True),
    ])
    def test_is_ready(self, path, ready):
        assert AudioRecord(audio_id="a1", audio_path_url=path).is_ready is ready

    def test_undecodable_chunks_become_none(self):
        record = AudioRecord.from_dict({"audio_id": "a1", "transcript_chunks": "{oops"})
        assert record.transcript_chunks is None

    def test_to_dict_keeps_metadata(self):
        record = AudioRecord.from_dict({
            "audio_id": "a2",
            "audio_path_url": "audios/a2.wav",
            "title": "Take 2",
            "created_at": "2026-01-05T10:00:00Z",
            "transcript_chunks": '[{"text": "hi", "timestamp": [0.0, 0.4]}]',
        })
        assert record.to_dict() == {
            "audio_id": "a2",
            "audio_path_url": "audios/a2.wav",
            "title": "Take 2",
            "created_at": "2026-01-05T10:00:00Z",
            "transcript_chunks": [{"text": "hi", "timestamp": [0.0, 0.4]}],
        }
