"""Command-line interface for transcript/timeline reconciliation.

WHY: Editors, scripts and CI need the reconciliation pipeline without a
browser: given a stored transcript and an edited text, which regions of
the audio must be re-synthesized? The CLI also exposes the duration
probe, talks to the editor backend and starts the HTTP API.

HOW: argparse with six subcommands:
  reconcile  — load a transcript JSON file, apply an edited text against
               it (optionally carrying previous selections), print the
               resulting tokens, changed regions and selections as JSON
  probe      — print an audio file's duration via ffprobe
  serve      — run the FastAPI app with uvicorn
  transcribe — ask the backend to transcribe a stored audio, print chunks
  render     — reconcile an edit and submit the render request
  wait       — poll until a rendered audio is stored, print its record

RULES:
- Results go to stdout as JSON; status and errors go to stderr
- Malformed transcripts or selection files exit with code 1
- Backend errors, a missing API token and poll timeouts exit with code 1
- --text and --text-file are mutually exclusive; one is required
- Logging is configured here (basicConfig), never in library modules
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, NoReturn, Optional

from transcript_timeline import __version__
from transcript_timeline.api.client import (
    BackendAPIError,
    EditorBackendClient,
    FinalAudioTimeoutError,
)
from transcript_timeline.api.models import AudioEditRequest, AudioRecord, TranscriptionResult
from transcript_timeline.config import (
    API_HOST,
    API_PORT,
    FINAL_AUDIO_POLL_INTERVAL_S,
    FINAL_AUDIO_POLL_TIMEOUT_S,
)
from transcript_timeline.core.ir import MalformedReferenceError, ReferenceWord, Selection
from transcript_timeline.core.reconciler import apply_text_edit
from transcript_timeline.core.reference import (
    build_reference,
    parse_transcript_payload,
    tokens_to_text,
)
from transcript_timeline.media.probe import probe_duration


def _status(msg: str) -> None:
    """Print a status message to stderr.

    RULES:
    - All status messages go to stderr so stdout stays pipeable
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> NoReturn:
    _status("Error: {}".format(msg))
    sys.exit(1)


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        _fail("Cannot read {}: {}".format(path, exc))
    except ValueError as exc:
        _fail("{} is not valid JSON: {}".format(path, exc))


def _load_selections(path: Optional[str]) -> List[Selection]:
    if path is None:
        return []
    data = _read_json(path)
    if not isinstance(data, list):
        _fail("{} must contain a list of selections".format(path))
    try:
        return [Selection.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as exc:
        _fail("Invalid selection in {}: {}".format(path, exc))


def _load_reference(path: str, audio_duration: Optional[float]) -> tuple[ReferenceWord, ...]:
    payload = _read_json(path)
    try:
        records = parse_transcript_payload(payload)
        return build_reference(records, audio_duration)
    except MalformedReferenceError as exc:
        location = ""
        if exc.index is not None:
            location = " (entry {})".format(exc.index)
        _fail("Malformed transcript{}: {}".format(location, exc))


def _read_edited_text(args: argparse.Namespace) -> str:
    if args.text_file is None:
        return args.text
    try:
        return Path(args.text_file).read_text(encoding="utf-8")
    except OSError as exc:
        _fail("Cannot read {}: {}".format(args.text_file, exc))


def _open_backend() -> EditorBackendClient:
    """Create the backend client, failing cleanly when no token is configured."""
    try:
        return EditorBackendClient()
    except ValueError as exc:
        _fail(str(exc))


def _print_json(data: Any) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_reconcile(args: argparse.Namespace) -> None:
    reference = _load_reference(args.transcript, args.audio_duration)
    text = _read_edited_text(args)
    selections = _load_selections(args.selections)
    result = apply_text_edit(text, reference, selections)

    _status("{} words, {} changed region(s), {} selection(s)".format(
        len(reference), len(result.candidates), len(result.selections),
    ))
    _print_json(result.to_dict())


def _cmd_probe(args: argparse.Namespace) -> None:
    duration = asyncio.run(probe_duration(args.audio))
    if duration <= 0:
        _status("Could not determine a duration for {}".format(args.audio))
    print("{:.3f}".format(duration))


def _cmd_serve(args: argparse.Namespace) -> None:
    from transcript_timeline.server.app import run_api

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _status("Serving on http://{}:{}".format(args.host, args.port))
    run_api(args.host, args.port)


async def _transcribe(client: EditorBackendClient, audio_id: str) -> TranscriptionResult:
    async with client:
        return await client.request_transcription(audio_id)


def _cmd_transcribe(args: argparse.Namespace) -> None:
    client = _open_backend()
    _status("Requesting transcription for {}...".format(args.audio_id))
    try:
        result = asyncio.run(_transcribe(client, args.audio_id))
    except BackendAPIError as exc:
        _fail(str(exc))

    if result.transcript_chunks is None:
        _fail("Backend returned no transcript for {}".format(args.audio_id))
    _status("  {} chunk(s), language: {}".format(
        len(result.transcript_chunks), result.language or "unknown",
    ))
    _print_json(result.transcript_chunks)


async def _submit(client: EditorBackendClient, request: AudioEditRequest) -> str:
    async with client:
        return await client.request_audio_edit(request)


def _cmd_render(args: argparse.Namespace) -> None:
    """Reconcile an edit and submit the resulting selections for rendering.

    HOW: Runs the same pipeline as reconcile, then sends the reconciled
    text and every selection to the backend. The rendered audio id is
    announced by the backend separately; use `wait` on it afterwards.
    """
    reference = _load_reference(args.transcript, args.audio_duration)
    text = _read_edited_text(args)
    selections = _load_selections(args.selections)
    result = apply_text_edit(text, reference, selections)
    if not result.selections:
        _fail("Nothing to render: the text changes no region and no selections were given")

    request = AudioEditRequest.from_selections(
        args.audio_id, tokens_to_text(result.tokens), result.selections,
    )
    client = _open_backend()
    _status("Submitting {} selection(s) for audio {}...".format(
        len(request.selections), args.audio_id,
    ))
    try:
        request_id = asyncio.run(_submit(client, request))
    except BackendAPIError as exc:
        _fail(str(exc))
    print(request_id)


async def _wait(
    client: EditorBackendClient,
    audio_id: str,
    timeout_s: float,
    interval_s: float,
) -> AudioRecord:
    async with client:
        return await client.poll_for_final_audio(audio_id, timeout_s=timeout_s, interval_s=interval_s)


def _cmd_wait(args: argparse.Namespace) -> None:
    client = _open_backend()
    _status("Waiting for audio {} (timeout {:.0f}s)...".format(args.audio_id, args.timeout))
    try:
        record = asyncio.run(_wait(client, args.audio_id, args.timeout, args.interval))
    except FinalAudioTimeoutError as exc:
        _fail(str(exc))

    label = record.title or record.audio_id
    if record.created_at:
        label = "{} (created {})".format(label, record.created_at)
    _status("Ready: {}".format(label))
    _print_json(record.to_dict())


# ---------------------------------------------------------------------------
# Parser / entry point
# ---------------------------------------------------------------------------


def _add_edit_arguments(cmd: argparse.ArgumentParser) -> None:
    """Arguments shared by reconcile and render."""
    cmd.add_argument(
        "transcript",
        help="Transcript JSON file: word records or transcription chunks.",
    )
    text_group = cmd.add_mutually_exclusive_group(required=True)
    text_group.add_argument("--text", help="Edited transcript text.")
    text_group.add_argument("--text-file", default=None, help="File holding the edited text.")
    cmd.add_argument(
        "--selections",
        default=None,
        help="JSON file with the current selections (manual and derived).",
    )
    cmd.add_argument(
        "--audio-duration",
        type=float,
        default=None,
        help="Audio duration in seconds, used to close an open final word.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() lets tests inspect
    the parser without running any subcommand.
    """
    parser = argparse.ArgumentParser(
        prog="transcript-timeline",
        description="Keep an edited transcript and its audio timeline in sync.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser(
        "reconcile",
        help="Apply an edited text to a transcript and print the changed regions.",
    )
    _add_edit_arguments(rec)
    rec.set_defaults(func=_cmd_reconcile)

    probe = sub.add_parser("probe", help="Print an audio file's duration in seconds.")
    probe.add_argument("audio", help="Path or URL of the audio.")
    probe.set_defaults(func=_cmd_probe)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=API_HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=API_PORT, help="Port (default: %(default)s).")
    serve.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    serve.set_defaults(func=_cmd_serve)

    stt = sub.add_parser(
        "transcribe",
        help="Transcribe a stored audio on the backend and print its chunks.",
    )
    stt.add_argument("audio_id", help="Backend id of the audio.")
    stt.set_defaults(func=_cmd_transcribe)

    render = sub.add_parser(
        "render",
        help="Reconcile an edited text and submit the selections for re-synthesis.",
    )
    _add_edit_arguments(render)
    render.add_argument("--audio-id", required=True, help="Backend id of the audio being edited.")
    render.set_defaults(func=_cmd_render)

    wait = sub.add_parser("wait", help="Wait until a rendered audio is stored.")
    wait.add_argument("audio_id", help="Backend id of the rendered audio.")
    wait.add_argument(
        "--timeout",
        type=float,
        default=FINAL_AUDIO_POLL_TIMEOUT_S,
        help="Give up after this many seconds (default: %(default)s).",
    )
    wait.add_argument(
        "--interval",
        type=float,
        default=FINAL_AUDIO_POLL_INTERVAL_S,
        help="Seconds between checks (default: %(default)s).",
    )
    wait.set_defaults(func=_cmd_wait)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
