"""
In-memory store of live CAPTCHA sessions.

One entry per issued CAPTCHA: an opaque uuid4 id mapped to the browser
handle whose page still shows the form. Entries are single-use. The
store never closes browsers itself; whoever pops an entry owns it.

Lost on restart. Not shared across processes.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class SessionLimitError(Exception):
    """Concurrent session cap reached."""


@dataclass
class Session:
    """A live browser/page pair waiting to be redeemed."""
    session_id: str
    handle: Any
    created_at: float = field(default_factory=time.monotonic)

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.monotonic()) - self.created_at


class SessionStore:
    """Maps session ids to open browser handles.

    ``max_sessions`` of 0 means unlimited.
    """

    def __init__(self, max_sessions: int = 0):
        self._max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}
        self._reserved = 0

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def ids(self) -> list[str]:
        return list(self._sessions)

    @contextmanager
    def reserve(self) -> Iterator[None]:
        """Hold a slot while a new session is being set up.

        Raises SessionLimitError when live sessions plus in-flight
        reservations already reach the cap.
        """
        if self._max_sessions and len(self._sessions) + self._reserved >= self._max_sessions:
            raise SessionLimitError(
                f"Session limit reached ({self._max_sessions} active)"
            )
        self._reserved += 1
        try:
            yield
        finally:
            self._reserved -= 1

    def create(self, handle: Any) -> str:
        """Store ``handle`` under a fresh id and return the id."""
        session_id = str(uuid.uuid4())
        while session_id in self._sessions:
            session_id = str(uuid.uuid4())
        self._sessions[session_id] = Session(session_id=session_id, handle=handle)
        logger.info("Session %s created (%d active)", session_id, len(self._sessions))
        return session_id

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Session %s removed (%d active)", session_id, len(self._sessions))
        return session

    # Single-use redemption is a pop.
    claim = remove

    def expire_idle(self, ttl_seconds: float, now: float | None = None) -> list[Session]:
        """Pop and return every session older than ``ttl_seconds``."""
        now = now if now is not None else time.monotonic()
        expired = [s for s in self._sessions.values() if s.age(now) > ttl_seconds]
        for session in expired:
            del self._sessions[session.session_id]
            logger.info(
                "Session %s expired after %.0fs idle", session.session_id, session.age(now),
            )
        return expired

    def drain(self) -> list[Session]:
        """Pop every session (shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions
