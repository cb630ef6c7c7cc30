"""Tests for the command-line interface."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from transcript_timeline.api.client import EditorBackendClient
from transcript_timeline.cli import build_parser, main

BASE_URL = "http://backend.test/v1"


@pytest.fixture
def transcript_file(tmp_path, korean_records):
    path = tmp_path / "transcript.json"
    path.write_text(json.dumps(korean_records, ensure_ascii=False), encoding="utf-8")
    return path


def _use_backend(monkeypatch, handler):
    """Point the CLI at an in-process backend; returns the requests it saw."""
    seen = []

    def _record(request):
        seen.append(request)
        return handler(request)

    def _client():
        return EditorBackendClient(
            api_token="tok", base_url=BASE_URL, transport=httpx.MockTransport(_record),
        )

    monkeypatch.setattr("transcript_timeline.cli.EditorBackendClient", _client)
    return seen


class TestParser:

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_reconcile_needs_text(self, transcript_file):
        with pytest.raises(SystemExit) as exc_info:
            main(["reconcile", str(transcript_file)])
        assert exc_info.value.code == 2

    def test_text_options_are_exclusive(self, transcript_file):
        with pytest.raises(SystemExit):
            main(["reconcile", str(transcript_file), "--text", "a", "--text-file", "b.txt"])

    def test_render_needs_audio_id(self, transcript_file):
        with pytest.raises(SystemExit) as exc_info:
            main(["render", str(transcript_file), "--text", "a"])
        assert exc_info.value.code == 2

    def test_wait_defaults(self):
        args = build_parser().parse_args(["wait", "a2"])
        assert args.audio_id == "a2"
        assert args.timeout > 0
        assert args.interval > 0


class TestReconcileCommand:

    def test_prints_result_json(self, transcript_file, capsys):
        main(["reconcile", str(transcript_file), "--text", "안녕 반가워요"])

        out, err = capsys.readouterr()
        result = json.loads(out)
        assert result["candidates"] == [{"start": 0.5, "end": 1.8}]
        assert [s["id"] for s in result["selections"]] == ["auto-0.500-1.800"]
        assert [t["text"] for t in result["tokens"]] == ["안녕", "반가워요"]
        assert "1 changed region(s)" in err

    def test_text_file(self, transcript_file, tmp_path, capsys):
        text_file = tmp_path / "edited.txt"
        text_file.write_text("안녕 하세요 반갑습니다\n", encoding="utf-8")

        main(["reconcile", str(transcript_file), "--text-file", str(text_file)])

        assert json.loads(capsys.readouterr().out)["selections"] == []

    def test_previous_selections_carried(self, transcript_file, tmp_path, capsys):
        selections = tmp_path / "selections.json"
        selections.write_text(json.dumps([
            {"id": "m1", "abs_start": 3.0, "abs_end": 4.0, "origin": "manual"},
            {"id": "auto-0.500-1.800", "abs_start": 0.5, "abs_end": 1.8,
             "duration_delta": 0.3, "origin": "derived"},
        ]), encoding="utf-8")

        main([
            "reconcile", str(transcript_file),
            "--text", "안녕 반가워",
            "--selections", str(selections),
        ])

        result = json.loads(capsys.readouterr().out)
        assert [s["id"] for s in result["selections"]] == ["m1", "auto-0.500-1.800"]
        assert result["selections"][1]["duration_delta"] == 0.3

    def test_open_end_with_audio_duration(self, tmp_path, capsys):
        path = tmp_path / "chunks.json"
        path.write_text(json.dumps([
            {"text": "hello", "timestamp": [0.0, 0.5]},
            {"text": "world", "timestamp": [0.5, None]},
        ]), encoding="utf-8")

        main(["reconcile", str(path), "--text", "hello", "--audio-duration", "1.25"])

        result = json.loads(capsys.readouterr().out)
        assert result["candidates"] == [{"start": 0.5, "end": 1.25}]

    def test_malformed_transcript_exits_1(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([
            {"id": "w1", "word": "a", "start": 0.0, "end": 0.6},
            {"id": "w2", "word": "b", "start": 0.5, "end": 1.0},
        ]), encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            main(["reconcile", str(path), "--text", "a b"])

        assert exc_info.value.code == 1
        out, err = capsys.readouterr()
        assert out == ""
        assert "Malformed transcript (entry 1)" in err

    def test_missing_file_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["reconcile", str(tmp_path / "missing.json"), "--text", "a"])
        assert exc_info.value.code == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_invalid_selections_exit_1(self, transcript_file, tmp_path):
        selections = tmp_path / "selections.json"
        selections.write_text(json.dumps([{"id": "x", "abs_start": 2.0, "abs_end": 1.0}]))
        with pytest.raises(SystemExit) as exc_info:
            main(["reconcile", str(transcript_file), "--text", "a", "--selections", str(selections)])
        assert exc_info.value.code == 1


class TestProbeCommand:

    def test_prints_duration(self, capsys):
        with patch("transcript_timeline.cli.probe_duration", new=AsyncMock(return_value=12.5)):
            main(["probe", "clip.wav"])
        assert capsys.readouterr().out.strip() == "12.500"

    def test_failure_reported_on_stderr(self, capsys):
        with patch("transcript_timeline.cli.probe_duration", new=AsyncMock(return_value=0.0)):
            main(["probe", "clip.wav"])
        out, err = capsys.readouterr()
        assert out.strip() == "0.000"
        assert "Could not determine" in err


class TestServeCommand:

    def test_runs_api(self):
        with patch("transcript_timeline.server.app.run_api") as run_api:
            main(["serve", "--host", "127.0.0.1", "--port", "9001"])
        run_api.assert_called_once_with("127.0.0.1", 9001)


# ---------------------------------------------------------------------------
# Backend commands
# ---------------------------------------------------------------------------


class TestTranscribeCommand:

    def test_prints_chunks(self, monkeypatch, capsys):
        chunks = [{"text": "안녕", "timestamp": [0.0, 0.5]}, {"text": "하세요", "timestamp": [0.5, None]}]

        def handler(request):
            return httpx.Response(200, json={
                "transcript_chunks": json.dumps(chunks, ensure_ascii=False),
                "language": "ko",
            })

        seen = _use_backend(monkeypatch, handler)
        main(["transcribe", "a1"])

        out, err = capsys.readouterr()
        assert json.loads(out) == chunks
        assert "2 chunk(s), language: ko" in err
        assert [r.url.path for r in seen] == ["/v1/stt"]

    def test_output_feeds_reconcile(self, monkeypatch, tmp_path, capsys):
        chunks = [{"text": "hello", "timestamp": [0.0, 0.5]}, {"text": "world", "timestamp": [0.5, 1.0]}]
        _use_backend(monkeypatch, lambda r: httpx.Response(200, json={"transcript_chunks": chunks}))
        main(["transcribe", "a1"])
        path = tmp_path / "chunks.json"
        path.write_text(capsys.readouterr().out, encoding="utf-8")

        main(["reconcile", str(path), "--text", "hello"])

        assert json.loads(capsys.readouterr().out)["candidates"] == [{"start": 0.5, "end": 1.0}]

    def test_empty_transcript_exits_1(self, monkeypatch, capsys):
        _use_backend(monkeypatch, lambda r: httpx.Response(200, json={"transcript_chunks": None}))
        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", "a1"])
        assert exc_info.value.code == 1
        assert "no transcript" in capsys.readouterr().err

    def test_backend_error_exits_1(self, monkeypatch, capsys):
        _use_backend(monkeypatch, lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", "a1"])
        assert exc_info.value.code == 1
        assert "Editor backend error 502" in capsys.readouterr().err

    def test_missing_token_exits_1(self, monkeypatch, capsys):
        monkeypatch.delenv("EDITOR_API_TOKEN", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", "a1"])
        assert exc_info.value.code == 1
        assert "EDITOR_API_TOKEN" in capsys.readouterr().err


class TestRenderCommand:

    def test_submits_reconciled_selections(self, transcript_file, monkeypatch, capsys):
        seen = _use_backend(monkeypatch, lambda r: httpx.Response(202, json={"request_id": "r1"}))

        main(["render", str(transcript_file), "--text", "안녕 반가워요", "--audio-id", "a1"])

        assert capsys.readouterr().out.strip() == "r1"
        (request,) = seen
        assert request.url.path == "/v1/edit-audio"
        assert json.loads(request.content) == {
            "audioId": "a1",
            "text": "안녕 반가워요",
            "selections": [{"absStart": 0.5, "absEnd": 1.8, "durationDelta": 0.0}],
        }

    def test_carried_selection_keeps_its_delta(self, transcript_file, tmp_path, monkeypatch):
        selections = tmp_path / "selections.json"
        selections.write_text(json.dumps([
            {"id": "auto-0.500-1.800", "abs_start": 0.5, "abs_end": 1.8,
             "duration_delta": 0.3, "origin": "derived"},
        ]), encoding="utf-8")
        seen = _use_backend(monkeypatch, lambda r: httpx.Response(200, json={"request_id": "r2"}))

        main([
            "render", str(transcript_file), "--text", "안녕 반가워",
            "--selections", str(selections), "--audio-id", "a1",
        ])

        body = json.loads(seen[0].content)
        assert body["selections"] == [{"absStart": 0.5, "absEnd": 1.8, "durationDelta": 0.3}]

    def test_nothing_to_render_sends_nothing(self, transcript_file, monkeypatch, capsys):
        seen = _use_backend(monkeypatch, lambda r: httpx.Response(202, json={"request_id": "r1"}))

        with pytest.raises(SystemExit) as exc_info:
            main(["render", str(transcript_file), "--text", "안녕 하세요 반갑습니다", "--audio-id", "a1"])

        assert exc_info.value.code == 1
        assert seen == []
        assert "Nothing to render" in capsys.readouterr().err

    def test_backend_error_exits_1(self, transcript_file, monkeypatch, capsys):
        _use_backend(monkeypatch, lambda r: httpx.Response(400, text="bad selection"))
        with pytest.raises(SystemExit) as exc_info:
            main(["render", str(transcript_file), "--text", "안녕", "--audio-id", "a1"])
        assert exc_info.value.code == 1
        assert "bad selection" in capsys.readouterr().err


class TestWaitCommand:

    def test_prints_record_once_stored(self, monkeypatch, capsys):
        responses = iter([
            httpx.Response(200, json={"audio_id": "a2", "audio_path_url": "placeholder/a2.wav"}),
            httpx.Response(200, json={
                "audio_id": "a2",
                "audio_path_url": "audios/a2.wav",
                "title": "Take 2",
                "created_at": "2026-01-05T10:00:00Z",
            }),
        ])
        seen = _use_backend(monkeypatch, lambda r: next(responses))

        main(["wait", "a2", "--interval", "0"])

        out, err = capsys.readouterr()
        record = json.loads(out)
        assert record["audio_path_url"] == "audios/a2.wav"
        assert record["title"] == "Take 2"
        assert "Ready: Take 2 (created 2026-01-05T10:00:00Z)" in err
        assert len(seen) == 2

    def test_untitled_record_uses_id(self, monkeypatch, capsys):
        _use_backend(monkeypatch, lambda r: httpx.Response(
            200, json={"audio_id": "a2", "audio_path_url": "audios/a2.wav"},
        ))
        main(["wait", "a2"])
        assert "Ready: a2" in capsys.readouterr().err

    def test_timeout_exits_1(self, monkeypatch, capsys):
        seen = _use_backend(monkeypatch, lambda r: httpx.Response(200, json={"audio_id": "a2"}))
        with pytest.raises(SystemExit) as exc_info:
            main(["wait", "a2", "--timeout", "0"])
        assert exc_info.value.code == 1
        assert "not ready after" in capsys.readouterr().err
        assert seen == []
