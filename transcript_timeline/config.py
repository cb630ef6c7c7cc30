"""Configuration constants and .env loading.

WHY: Centralizes every tunable value — timeline floors, auto-selection
id precision, backend endpoints, polling limits, session limits — so
they are easy to find and override without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level values; anything deployment-specific reads os.getenv with
a default. load_api_token() gives a clear error when the backend token
is missing.

RULES:
- Timeline floors (MIN_TARGET_DURATION_S, MIN_SELECTION_SPAN_S) are
  fixed contract values, not environment-overridable
- AUTO_ID_PREFIX / AUTO_ID_DECIMALS define the derived selection id
  format; changing them invalidates ids stored by earlier passes
- Backend token is loaded from .env, never hardcoded
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# Timeline model
# ---------------------------------------------------------------------------

MIN_TARGET_DURATION_S = 0.1
"""Floor for a selection's rendered duration (span + duration_delta)."""

MIN_SELECTION_SPAN_S = 0.1
"""Minimum separation between abs_start and abs_end enforced by drags."""

DEFAULT_MANUAL_SPAN_S = 1.0
"""Span of a selection created by a single timeline click."""

# ---------------------------------------------------------------------------
# Derived selection ids
# ---------------------------------------------------------------------------

AUTO_ID_PREFIX = "auto"
AUTO_ID_DECIMALS = 3

# ---------------------------------------------------------------------------
# Media probing
# ---------------------------------------------------------------------------

FFPROBE_BINARY = os.getenv("FFPROBE_BINARY", "ffprobe")

# ---------------------------------------------------------------------------
# External editor backend (transcription + re-synthesis)
# ---------------------------------------------------------------------------

EDITOR_API_BASE_URL = os.getenv("EDITOR_API_BASE_URL", "http://localhost:54321/functions/v1")
FINAL_AUDIO_POLL_TIMEOUT_S = float(os.getenv("FINAL_AUDIO_POLL_TIMEOUT_S", "180"))
FINAL_AUDIO_POLL_INTERVAL_S = float(os.getenv("FINAL_AUDIO_POLL_INTERVAL_S", "2"))
PLACEHOLDER_AUDIO_PREFIX = "placeholder"
"""Audio paths starting with this prefix mean the render is not stored yet."""

# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "100"))
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))


def load_api_token() -> str:
    """Load the editor backend token from the environment.

    WHY: Every backend call (transcription, re-synthesis, audio lookup)
    is authenticated with a bearer token.

    HOW: Reads EDITOR_API_TOKEN from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if the token is missing or empty
    - Never returns a default/placeholder value
    """
    token = os.getenv("EDITOR_API_TOKEN", "").strip()
    if not token:
        raise ValueError(
            "Editor backend token not configured. "
            "Add EDITOR_API_TOKEN to the .env file in the app folder."
        )
    return token
