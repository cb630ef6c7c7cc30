"""Editing session: the caller-side shell around the reconciliation core.

WHY: The core is pure and expects its caller to (1) feed text changes
in the order they happened, (2) carry the previous pass's derived
selections forward, (3) keep manual selections, and (4) ignore a
transcript load that was superseded by a newer audio. Every front end
(HTTP API, CLI, tests) needs exactly that bookkeeping, so it lives here
once.

HOW: EditingSession owns the reference words, current tokens and the
full selection list behind a threading.Lock. Text changes run the core
pipeline under the lock; stale revisions are dropped. Loads are tagged
with an audio id; begin_load() marks the audio that is allowed to
finish loading, and results for any other audio are discarded.

RULES:
- load_transcript replaces reference, tokens and selections atomically
- apply_text with a revision <= the last applied revision is a no-op
  (last-write-wins)
- Manual selection edits go through core.timeline clamping
- Derived selections may be adjusted (delta, bounds) but keep their id,
  so the next text pass carries the adjustment forward
- render_request requires a loaded audio id and at least one selection
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import Any

from transcript_timeline.api.models import AudioEditRequest
from transcript_timeline.core.ir import DisplayToken, ReferenceWord, Selection
from transcript_timeline.core.reconciler import apply_text_edit
from transcript_timeline.core.reference import (
    build_reference,
    initial_tokens,
    parse_transcript_payload,
    tokens_to_text,
)
from transcript_timeline.core.timeline import DragKind, apply_drag, new_manual_selection
from transcript_timeline.media.probe import probe_duration

logger = logging.getLogger(__name__)


class EditingSession:
    """Transcript + selections state for one audio being edited."""

    def __init__(self, session_id: str | None = None) -> None:
        self.id = session_id
        self.created_at = time.time()
        self.updated_at = self.created_at
        self.audio_id: str | None = None
        self._loading_audio_id: str | None = None
        self._reference: tuple[ReferenceWord, ...] = ()
        self._tokens: list[DisplayToken] = []
        self._selections: list[Selection] = []
        self._revision: int | None = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Read access (snapshots)
    # ------------------------------------------------------------------

    @property
    def reference(self) -> tuple[ReferenceWord, ...]:
        with self._lock:
            return self._reference

    @property
    def tokens(self) -> list[DisplayToken]:
        with self._lock:
            return list(self._tokens)

    @property
    def selections(self) -> list[Selection]:
        with self._lock:
            return list(self._selections)

    @property
    def text(self) -> str:
        with self._lock:
            return tokens_to_text(self._tokens)

    @property
    def revision(self) -> int | None:
        with self._lock:
            return self._revision

    def get_selection(self, selection_id: str) -> Selection | None:
        with self._lock:
            return self._find(selection_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def begin_load(self, audio_id: str) -> None:
        """Mark audio_id as the only load allowed to complete."""
        with self._lock:
            self._loading_audio_id = audio_id

    def is_current_load(self, audio_id: str) -> bool:
        with self._lock:
            return self._loading_audio_id is None or self._loading_audio_id == audio_id

    def load_transcript(
        self,
        words: Sequence[ReferenceWord],
        audio_id: str | None = None,
    ) -> bool:
        """Replace the reference transcript and reset tokens and selections.

        Returns:
            False when the load belongs to a superseded audio and was
            discarded, True otherwise.
        """
        with self._lock:
            if (
                audio_id is not None
                and self._loading_audio_id is not None
                and audio_id != self._loading_audio_id
            ):
                logger.info(
                    "Discarding transcript for superseded audio %s (current: %s)",
                    audio_id, self._loading_audio_id,
                )
                return False

            self._reference = tuple(words)
            self._tokens = initial_tokens(self._reference)
            self._selections = []
            self._revision = None
            if audio_id is not None:
                self.audio_id = audio_id
            self._touch()

        logger.info("Loaded %d reference words for audio %s", len(words), audio_id)
        return True

    def load_payload(
        self,
        payload: str | Sequence[dict[str, Any]],
        audio_id: str | None = None,
        audio_duration: float | None = None,
    ) -> bool:
        """Parse a raw transcription payload and load it.

        RULES:
        - Raises MalformedReferenceError before touching session state
        """
        records = parse_transcript_payload(payload)
        words = build_reference(records, audio_duration)
        return self.load_transcript(words, audio_id)

    async def load_audio(
        self,
        audio_id: str,
        source: str,
        payload: str | Sequence[dict[str, Any]],
        probe: Callable[[str], Awaitable[float]] = probe_duration,
    ) -> bool:
        """Probe the audio duration, then load its transcript (last load wins).

        WHY: Open word ends can only be resolved once the duration is
        known; the probe is asynchronous, and the user may have switched
        to another audio before it resolves.

        RULES:
        - Returns False when a newer begin_load() superseded this audio
          while the probe was running
        """
        self.begin_load(audio_id)
        duration = await probe(source)
        if not self.is_current_load(audio_id):
            logger.info("Probe for superseded audio %s resolved; ignoring", audio_id)
            return False
        return self.load_payload(payload, audio_id=audio_id, audio_duration=duration)

    # ------------------------------------------------------------------
    # Text edits
    # ------------------------------------------------------------------

    def apply_text(self, text: str, revision: int | None = None) -> bool:
        """Run one text-change pass.

        Returns:
            False when the pass was dropped as stale, True when applied.
        """
        with self._lock:
            if revision is not None and self._revision is not None and revision <= self._revision:
                logger.debug("Dropping stale text revision %d (last: %d)", revision, self._revision)
                return False

            result = apply_text_edit(text, self._reference, self._selections)
            self._tokens = result.tokens
            self._selections = result.selections
            if revision is not None:
                self._revision = revision
            self._touch()
            return True

    # ------------------------------------------------------------------
    # Selection edits
    # ------------------------------------------------------------------

    def add_selection(self, at: float, span: float | None = None) -> Selection:
        sel = new_manual_selection(at) if span is None else new_manual_selection(at, span)
        with self._lock:
            self._selections.append(sel)
            self._touch()
        return sel

    def update_selection(
        self,
        selection_id: str,
        kind: DragKind | str,
        value: float,
    ) -> Selection:
        """Apply a clamped drag edit to one selection.

        RULES:
        - Raises KeyError for unknown ids, ValueError for unknown kinds
          and non-finite values
        - The selection keeps its id and position in the list
        """
        with self._lock:
            for index, sel in enumerate(self._selections):
                if sel.id == selection_id:
                    updated = apply_drag(sel, kind, value)
                    self._selections[index] = updated
                    self._touch()
                    return updated
        raise KeyError(selection_id)

    def set_active(self, selection_id: str, is_active: bool) -> Selection:
        with self._lock:
            for index, sel in enumerate(self._selections):
                if sel.id == selection_id:
                    updated = replace(sel, is_active=is_active)
                    self._selections[index] = updated
                    self._touch()
                    return updated
        raise KeyError(selection_id)

    def delete_selection(self, selection_id: str) -> bool:
        with self._lock:
            before = len(self._selections)
            self._selections = [s for s in self._selections if s.id != selection_id]
            removed = len(self._selections) != before
            if removed:
                self._touch()
            return removed

    # ------------------------------------------------------------------
    # Render request
    # ------------------------------------------------------------------

    def render_request(self) -> AudioEditRequest:
        """Build the re-synthesis request for the current state.

        RULES:
        - Raises ValueError when no audio is loaded or nothing is selected
        """
        with self._lock:
            if self.audio_id is None:
                raise ValueError("No audio loaded in this session")
            if not self._selections:
                raise ValueError("Select a region or edit the text before rendering")
            return AudioEditRequest.from_selections(
                self.audio_id,
                tokens_to_text(self._tokens),
                self._selections,
            )

    # ------------------------------------------------------------------
    # Internals (call with the lock held)
    # ------------------------------------------------------------------

    def _find(self, selection_id: str) -> Selection | None:
        for sel in self._selections:
            if sel.id == selection_id:
                return sel
        return None

    def _touch(self) -> None:
        self.updated_at = time.time()
