"""Asynchronous audio duration probe.

WHY: The transcription backend can leave the last word's end open.
Before reference words are built, that open end is resolved to the
audio's real duration, which only the media container knows.

HOW: Runs ffprobe as an asyncio subprocess and parses the container
duration from its output.

RULES:
- Fire-once per loaded audio; there is no cancellation. A caller that
  loads newer audio discards stale results itself (see session.py)
- Any failure (binary missing, non-zero exit, unparseable or
  non-finite output) is logged and returns 0.0
- source may be a local path or a URL ffprobe can open
"""

from __future__ import annotations

import asyncio
import logging
import math
from pathlib import Path

from transcript_timeline.config import FFPROBE_BINARY

logger = logging.getLogger(__name__)


def build_probe_command(source: str | Path, ffprobe: str = FFPROBE_BINARY) -> list[str]:
    return [
        ffprobe,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(source),
    ]


async def probe_duration(source: str | Path, ffprobe: str = FFPROBE_BINARY) -> float:
    """Return the duration of an audio resource in seconds, or 0.0 on failure."""
    cmd = build_probe_command(source, ffprobe)
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.warning("Could not start %s for %s: %s", ffprobe, source, exc)
        return 0.0

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        logger.warning(
            "ffprobe failed for %s (exit %s): %s",
            source, proc.returncode, stderr.decode("utf-8", "replace").strip()[:200],
        )
        return 0.0

    text = stdout.decode("utf-8", "replace").strip()
    try:
        duration = float(text)
    except ValueError:
        logger.warning("Unparseable ffprobe duration for %s: %r", source, text)
        return 0.0

    if not math.isfinite(duration) or duration < 0:
        logger.warning("Invalid ffprobe duration for %s: %r", source, text)
        return 0.0
    return duration
