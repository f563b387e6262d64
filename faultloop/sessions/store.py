"""
FaultLoop Sessions - Session storage abstraction.

Defines the SessionStore protocol and the in-memory reference store.
Persistence mechanics proper belong to the host; any object satisfying the
protocol can be plugged into FaultCaptureMiddleware.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Protocol

from .core import Session, SessionID


class SessionStore(Protocol):
    """
    Abstract session storage interface.

    All methods must be async and cancellation-safe.
    """

    async def load(self, session_id: SessionID) -> Session | None:
        """Load session from store, None if unknown."""
        ...

    async def save(self, session: Session) -> None:
        """Persist session."""
        ...

    async def delete(self, session_id: SessionID) -> None:
        """Delete session from store."""
        ...

    async def exists(self, session_id: SessionID) -> bool:
        """Check if session exists in store."""
        ...


class MemoryStore:
    """
    In-memory session storage for development and testing.

    Sessions are stored as deep copies so a request never mutates stored
    state until it saves. Oldest sessions are evicted past ``max_sessions``.

    NOT suitable for multi-process deployments.

    Example:
        >>> store = MemoryStore(max_sessions=10000)
        >>> await store.save(session)
        >>> loaded = await store.load(session.id)
        >>> assert loaded.id == session.id
    """

    def __init__(self, max_sessions: int = 10000):
        self.max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def load(self, session_id: SessionID) -> Session | None:
        async with self._lock:
            session = self._sessions.get(str(session_id))
            if session is None:
                return None
            loaded = copy.deepcopy(session)
        loaded.touch()
        loaded.mark_clean()
        return loaded

    async def save(self, session: Session) -> None:
        async with self._lock:
            key = str(session.id)
            if key not in self._sessions and len(self._sessions) >= self.max_sessions:
                oldest = min(self._sessions, key=lambda k: self._sessions[k].last_accessed_at)
                del self._sessions[oldest]
            self._sessions[key] = copy.deepcopy(session)
        session.mark_clean()

    async def delete(self, session_id: SessionID) -> None:
        async with self._lock:
            self._sessions.pop(str(session_id), None)

    async def exists(self, session_id: SessionID) -> bool:
        async with self._lock:
            return str(session_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
