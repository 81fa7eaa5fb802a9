"""
SessionStore — process-lifetime keeper of session → secret bundle mappings.

Provides the public API used by the dispatchers:
- ``create(id)`` — return a live session or start a new empty one
- ``get(id)`` — pure lookup, expired entries read as absent
- ``mutate(id, fn)`` — apply ``fn`` to a session, creating it when absent
- ``insert(session)`` — store a fully-built session
- ``delete(id)`` — idempotent removal
- ``sweep()`` — evict every session older than the configured TTL

Absence is represented by ``None``, never raised. A single asyncio lock
guards the table; callers must not hold it across network calls.

Security Note:
    Never log secret values or full session ids, only an id prefix.
"""
import time
import asyncio
import logging
from typing import Callable, Optional

from .data import SessionData, is_expired, remaining_seconds
from .crypto import generate_session_id

logger = logging.getLogger("navigator.broker")


def short_id(session_id: Optional[str]) -> str:
    """Loggable prefix of a session id."""
    if not session_id:
        return '-'
    return f"{session_id[:8]}…"


class SessionStore:
    """In-memory session table with lazy, TTL-based expiry.

    Args:
        ttl: Session lifetime in seconds.
        clock: Callable returning the current epoch time in seconds.
    """

    def __init__(
        self,
        ttl: int,
        clock: Callable[[], float] = time.time,
    ):
        self._ttl = ttl
        self._clock = clock
        self._sessions: dict[str, SessionData] = {}
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> int:
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def generate_id(self) -> str:
        return generate_session_id()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def _lookup(self, session_id: Optional[str]) -> Optional[SessionData]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if is_expired(self.now(), session.created, self._ttl):
            return None
        return session

    def _new_session(self, session_id: Optional[str] = None) -> SessionData:
        session = SessionData(
            id=session_id or self.generate_id(),
            created=self.now(),
        )
        self._sessions[session.session_id] = session
        logger.debug("Session created: %s", short_id(session.session_id))
        return session

    def remaining(self, session: SessionData) -> int:
        """Seconds left before ``session`` expires."""
        return remaining_seconds(self.now(), session.created, self._ttl)

    async def get(self, session_id: Optional[str]) -> Optional[SessionData]:
        """Return the live session for ``session_id`` or None."""
        async with self._lock:
            return self._lookup(session_id)

    async def create(
        self, session_id: Optional[str] = None
    ) -> tuple[str, SessionData]:
        """Return the live session under ``session_id`` or a new empty one.

        An unknown ``session_id`` is not adopted: the new session always
        receives a freshly generated identifier.
        """
        async with self._lock:
            session = self._lookup(session_id)
            if session is None:
                session = self._new_session()
            return session.session_id, session

    async def insert(self, session: SessionData) -> SessionData:
        """Store a session built outside the table (e.g. after validation)."""
        async with self._lock:
            self._sessions[session.session_id] = session
        logger.debug("Session stored: %s", short_id(session.session_id))
        return session

    async def mutate(
        self,
        session_id: str,
        fn: Callable[[SessionData], None],
        create: bool = True,
    ) -> Optional[SessionData]:
        """Apply ``fn`` to the session's secret bundle.

        The session is created under ``session_id`` when absent or
        expired, unless ``create`` is False, in which case nothing is
        applied and None is returned. ``fn`` runs while the table lock is
        held, so concurrent mutations of the same session are serialized.
        """
        async with self._lock:
            session = self._lookup(session_id)
            if session is None:
                if not create:
                    return None
                session = self._new_session(session_id)
            fn(session)
            return session

    async def delete(self, session_id: Optional[str]) -> bool:
        """Remove a session; returns whether an entry existed."""
        if not session_id:
            return False
        async with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            removed.invalidate()
            logger.debug("Session destroyed: %s", short_id(session_id))
        return removed is not None

    async def sweep(self) -> int:
        """Evict every expired session; returns the number evicted."""
        now = self.now()
        async with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if is_expired(now, session.created, self._ttl)
            ]
            for sid in expired:
                self._sessions.pop(sid).invalidate()
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        return len(expired)
