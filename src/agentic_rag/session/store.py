"""
In-memory session store.

Keeps conversational history per session id with time-based expiry.

Concurrency model:
- One asyncio.Lock per session id, created on first use and discarded once
  no task holds or waits on it
- append() and the expiry sweep take the session's lock, so a sweep never
  removes a session in the middle of an append
- No lock spans more than one session, so unrelated sessions never wait on
  each other
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from ..domain.entities import Message, Session, SessionSnapshot
from ..domain.ports import ISessionStore
from ..exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


class InMemorySessionStore(ISessionStore):
    """Session store backed by a dict of Session objects.

    History does not survive a process restart.

    Usage:
        store = InMemorySessionStore()

        history = await store.get_or_create("s1")
        await store.append("s1", [Message.user("hi"), Message.assistant("hello")])

        removed = await store.sweep(ttl_seconds=3600)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize the store.

        Args:
            clock: Monotonic time source (injectable for tests)
        """
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock, counting holders and waiters alike."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def _create(self, session_id: str) -> Session:
        session = Session(id=session_id, last_touched=self._clock())
        self._sessions[session_id] = session
        logger.debug(f"Created session {session_id}")
        return session

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def get_or_create(self, session_id: str) -> SessionSnapshot:
        """Return a snapshot of the session's history.

        Unknown ids get a fresh, empty session. Reading counts as access and
        refreshes last_touched.

        Args:
            session_id: Session identifier

        Returns:
            Immutable tuple of messages in insertion order
        """
        session = self._sessions.get(session_id)
        if session is None:
            session = self._create(session_id)
        session.last_touched = self._clock()
        return session.snapshot()

    async def get(self, session_id: str) -> Optional[SessionSnapshot]:
        """Return a snapshot if the session exists, without creating it."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        session.last_touched = self._clock()
        return session.snapshot()

    async def append(
        self,
        session_id: str,
        messages: list[Message],
        create_if_missing: bool = True,
    ) -> None:
        """Append the turns of one exchange as a single unit.

        If the session was swept while the exchange was in flight it is
        recreated, unless create_if_missing is False.

        Args:
            session_id: Session identifier
            messages: Turns to append, in order
            create_if_missing: Recreate an evicted/unknown session

        Raises:
            SessionNotFoundError: If the session is unknown and
                create_if_missing is False
        """
        async with self._locked(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                if not create_if_missing:
                    raise SessionNotFoundError(session_id)
                logger.info(f"Session {session_id} expired mid-exchange, recreating")
                session = self._create(session_id)
            session.history.extend(messages)
            session.last_touched = self._clock()

    async def touch(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.last_touched = self._clock()
        return True

    async def delete(self, session_id: str) -> bool:
        """Remove a session. Returns False if it did not exist."""
        async with self._locked(session_id):
            existed = self._sessions.pop(session_id, None) is not None
        return existed

    async def sweep(self, ttl_seconds: float) -> int:
        """Remove every session idle for longer than ttl_seconds.

        Each candidate is re-checked under its own lock, so a session that
        was appended to while the sweep waited survives.

        Args:
            ttl_seconds: Maximum idle time

        Returns:
            Number of sessions removed
        """
        cutoff = self._clock() - ttl_seconds
        candidates = [
            sid for sid, session in self._sessions.items()
            if session.last_touched < cutoff
        ]

        removed = 0
        for session_id in candidates:
            async with self._locked(session_id):
                session = self._sessions.get(session_id)
                if session is None or session.last_touched >= cutoff:
                    continue
                del self._sessions[session_id]
                removed += 1

        if removed:
            logger.info(f"Swept {removed} expired sessions ({len(self._sessions)} active)")
        return removed
