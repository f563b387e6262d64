"""
FaultLoop Sessions - Core types.

Defines the session the loop-detection state lives in:
- SessionID: Random cookie token
- Session: Key/value state container surviving across requests
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar


# ============================================================================
# SessionID
# ============================================================================

_TOKEN_BYTES = 32
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]{43}")


@dataclass(frozen=True)
class SessionID:
    """
    Random session token, rendered as ``sess_<token>`` in the cookie.

    Example:
        >>> sid = SessionID()
        >>> SessionID.from_string(str(sid)) == sid
        True
    """

    PREFIX: ClassVar[str] = "sess_"

    token: str = field(default_factory=lambda: secrets.token_urlsafe(_TOKEN_BYTES), repr=False)

    def __post_init__(self):
        if not _TOKEN_PATTERN.fullmatch(self.token):
            raise ValueError("Session token must be 43 URL-safe characters")

    def __str__(self) -> str:
        return f"{self.PREFIX}{self.token}"

    def __repr__(self) -> str:
        return f"SessionID({self.token[:8]}...)"

    @classmethod
    def from_string(cls, value: str) -> SessionID:
        """
        Parse the cookie form.

        Raises:
            ValueError: Missing prefix or malformed token
        """
        if not value.startswith(cls.PREFIX):
            raise ValueError(f"Session id must start with {cls.PREFIX!r}")
        return cls(value[len(cls.PREFIX):])


# ============================================================================
# Session
# ============================================================================

@dataclass
class Session:
    """
    Session state container.

    The fault pipeline only needs named-field access (get/set/delete); the
    store is responsible for persisting the container between requests.

    Attributes:
        id: Opaque identifier
        data: Application state
        created_at: When session was created
        last_accessed_at: When session was last loaded
    """

    id: SessionID = field(default_factory=SessionID)
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_accessed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    _dirty: bool = field(default=False, repr=False)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value
        self._dirty = True

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set data value (explicit, marks dirty)."""
        self.data[key] = value
        self._dirty = True

    def delete(self, key: str) -> None:
        """Delete data key if present (marks dirty)."""
        if key in self.data:
            del self.data[key]
            self._dirty = True

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the data, safe to render or strip."""
        return dict(self.data)

    def touch(self, now: datetime | None = None) -> None:
        self.last_accessed_at = now or datetime.now(timezone.utc)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False
