"""Registry mapping Socket.IO connections to stream sessions."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from .session import StreamSession
from .status_snapshot import SessionStatus

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[str], StreamSession]


class SessionRegistry:
    """Track one :class:`StreamSession` per connection id."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, StreamSession] = {}
        self._session_factory = session_factory

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._sessions

    def get(self, connection_id: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(connection_id)

    def get_or_create(self, connection_id: str) -> StreamSession:
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is None:
                session = self._session_factory(connection_id)
                self._sessions[connection_id] = session
                LOGGER.info("Registered session %s (%d active)", connection_id, len(self._sessions))
            return session

    def remove(self, connection_id: str, session: Optional[StreamSession] = None) -> bool:
        """Drop ``connection_id``; returns whether an entry was removed.

        When ``session`` is given the entry is only removed if it still maps
        to that exact session.
        """

        with self._lock:
            current = self._sessions.get(connection_id)
            if current is None or (session is not None and current is not session):
                return False
            del self._sessions[connection_id]
            remaining = len(self._sessions)
        LOGGER.info("Removed session %s (%d active)", connection_id, remaining)
        return True

    def disconnect(self, connection_id: str, *, wait: bool = False) -> bool:
        """Tear down and remove the session for ``connection_id``."""

        session = self.get(connection_id)
        if session is None:
            LOGGER.debug("Disconnect for unknown session %s", connection_id)
            return False
        session.disconnect(wait=wait)
        return self.remove(connection_id, session)

    def shutdown(self) -> None:
        """Terminate every session and wait for the encoders to exit."""

        with self._lock:
            connection_ids = list(self._sessions)
        for connection_id in connection_ids:
            self.disconnect(connection_id, wait=True)

    def snapshot(self) -> List[SessionStatus]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.status() for session in sessions]


__all__ = ["SessionFactory", "SessionRegistry"]
