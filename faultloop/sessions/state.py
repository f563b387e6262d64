"""
Typed view over the loop-detection fields of a session.

Three named fields carry the loop state between otherwise stateless
requests:

- ``errorLoop``: consecutive fatal faults on the same logical request
- ``errorBacklog``: heading (and at most one stack trace) of the report chain
- ``error``: the last full report
"""

from __future__ import annotations

from typing import Optional

from .core import Session

ERROR_KEY = "error"
BACKLOG_KEY = "errorBacklog"
LOOP_KEY = "errorLoop"

FAULT_FIELDS = (ERROR_KEY, BACKLOG_KEY)


class LoopState:
    """
    Session-backed loop state.

    Example:
        >>> state = LoopState(session)
        >>> state.counter is None
        True
        >>> state.counter = 1
        >>> session.get("errorLoop")
        1
    """

    __slots__ = ("_session",)

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    @property
    def counter(self) -> Optional[int]:
        """Consecutive-fault counter; None when absent."""
        value = self._session.get(LOOP_KEY)
        return int(value) if value is not None else None

    @counter.setter
    def counter(self, value: int) -> None:
        self._session.set(LOOP_KEY, value)

    def reset_counter(self) -> None:
        self._session.delete(LOOP_KEY)

    @property
    def backlog(self) -> str:
        return self._session.get(BACKLOG_KEY) or ""

    @backlog.setter
    def backlog(self, value: str) -> None:
        self._session.set(BACKLOG_KEY, value)

    def clear_backlog(self) -> None:
        self._session.delete(BACKLOG_KEY)

    @property
    def error(self) -> Optional[str]:
        return self._session.get(ERROR_KEY)

    @error.setter
    def error(self, value: str) -> None:
        self._session.set(ERROR_KEY, value)

    def clear_error(self) -> None:
        self._session.delete(ERROR_KEY)

    def clear(self) -> None:
        """Drop every loop field (used after a loop-break)."""
        self.clear_backlog()
        self.clear_error()
        self.reset_counter()

    def __repr__(self) -> str:
        return f"LoopState(counter={self.counter}, backlog={len(self.backlog)} chars, error={self.error is not None})"
