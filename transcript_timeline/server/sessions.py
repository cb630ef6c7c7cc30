"""In-memory store of editing sessions with TTL cleanup.

WHY: The HTTP API serves several editors at once. Each needs its own
EditingSession that survives between requests but should not live
forever once the editor goes away. An in-memory store is enough for a
single-process tool with no persistence requirements.

HOW: A dict of sessions keyed by id, guarded by a threading.Lock.
Sessions expire when they have not been touched for ttl_seconds;
cleanup_expired() is run periodically by the app.

RULES:
- All store mutations are protected by self._lock
- Session ids are UUID4 hex strings generated at creation time
- get_session() returns None for unknown ids (no exceptions)
- create_session() raises ValueError when max_sessions is reached
- Expiry is measured from the session's last update, not its creation
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Dict, List, Optional

from transcript_timeline.config import MAX_SESSIONS, SESSION_TTL_SECONDS
from transcript_timeline.session import EditingSession

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = SESSION_TTL_SECONDS


class SessionStore:
    """Thread-safe in-memory store for editing sessions."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_sessions: int = MAX_SESSIONS,
    ) -> None:
        self._sessions: Dict[str, EditingSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions

    def create_session(self) -> EditingSession:
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of concurrent sessions ({}) reached".format(
                        self.max_sessions
                    )
                )
            session = EditingSession(session_id=uuid.uuid4().hex)
            self._sessions[session.id] = session

        logger.info("Created session %s", session.id)
        return session

    def get_session(self, session_id: str) -> Optional[EditingSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> List[EditingSession]:
        """All sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("Deleted session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove sessions idle for longer than the TTL; return how many."""
        now = time.time()
        with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if now - session.updated_at > self._ttl_seconds
            ]
            for sid in expired:
                del self._sessions[sid]

        for sid in expired:
            logger.info("Expired session %s", sid)
        return len(expired)
