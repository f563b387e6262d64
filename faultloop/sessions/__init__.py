"""
FaultLoop Sessions - where loop-detection state survives between requests.

Exports:
- Session, SessionID: state container and its identifier
- LoopState: typed view over the ``error``/``errorBacklog``/``errorLoop`` fields
- SessionStore, MemoryStore: storage protocol and reference store
- CookieTransport: session id transport
"""

from .core import Session, SessionID
from .state import LoopState, ERROR_KEY, BACKLOG_KEY, LOOP_KEY, FAULT_FIELDS
from .store import SessionStore, MemoryStore
from .transport import CookieTransport

__all__ = [
    "Session",
    "SessionID",
    "LoopState",
    "ERROR_KEY",
    "BACKLOG_KEY",
    "LOOP_KEY",
    "FAULT_FIELDS",
    "SessionStore",
    "MemoryStore",
    "CookieTransport",
]
