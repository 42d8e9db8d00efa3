"""In-memory caption session store with TTL cleanup.

WHY: The HTTP API serves bubble captions for clips that a client is
currently recording. Each clip gets its own CaptionSession, created by one
request and polled by many. Sessions must never leak between clips, and
abandoned ones must not accumulate.

HOW: SessionStore is a thread-safe dict of StoredSession records keyed by
a UUID hex id. Every lookup refreshes last_access; cleanup_expired()
removes sessions idle for longer than the TTL and resets them so any
straggling reference sees an empty session.

RULES:
- All store mutations are protected by threading.Lock
- create_session() raises ValueError when max_sessions is reached
- get_session() returns None for unknown ids (no exceptions)
- TTL is measured from last access, not creation
- Removed sessions are reset()
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from caption_sync import config
from caption_sync.core.captions import CaptionSession

logger = logging.getLogger(__name__)


@dataclass
class StoredSession:
    """A caption session plus bookkeeping for expiry."""

    id: str
    episode_id: str
    session: CaptionSession
    created_at: float
    last_access: float


class SessionStore:
    """Thread-safe in-memory store for caption sessions."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_sessions: Optional[int] = None,
    ) -> None:
        self._sessions: Dict[str, StoredSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else config.SESSION_TTL_SECONDS
        self.max_sessions = max_sessions if max_sessions is not None else config.MAX_SESSIONS

    def create_session(self, episode_id: str, session: CaptionSession) -> StoredSession:
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of caption sessions ({}) reached".format(self.max_sessions)
                )
            now = time.time()
            stored = StoredSession(
                id=uuid.uuid4().hex,
                episode_id=episode_id,
                session=session,
                created_at=now,
                last_access=now,
            )
            self._sessions[stored.id] = stored

        logger.info("Created caption session %s for episode %s", stored.id, episode_id)
        return stored

    def get_session(self, session_id: str) -> Optional[StoredSession]:
        """Look up a session and refresh its last_access time."""
        with self._lock:
            stored = self._sessions.get(session_id)
            if stored is not None:
                stored.last_access = time.time()
            return stored

    def list_sessions(self) -> List[StoredSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            stored = self._sessions.pop(session_id, None)
        if stored is None:
            return False
        stored.session.reset()
        logger.info("Deleted caption session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove sessions idle longer than the TTL; return how many."""
        now = time.time()
        expired: List[StoredSession] = []
        with self._lock:
            for session_id, stored in list(self._sessions.items()):
                if now - stored.last_access > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for stored in expired:
            stored.session.reset()
            logger.info("Expired caption session %s (idle %.0fs)", stored.id, now - stored.last_access)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for stored in sessions:
            stored.session.reset()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
