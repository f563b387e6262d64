"""
FaultLoop Sessions - Cookie transport.

Carries the session identifier between the client and the middleware.
"""

from __future__ import annotations

from typing import Optional

from ..request import RequestContext
from .core import Session, SessionID


class CookieTransport:
    """
    Cookie-based session transport.

    Example:
        >>> transport = CookieTransport("faultloop_session")
        >>> session_id = transport.extract(request)
        >>> response.append_header("set-cookie", transport.header(session))
    """

    def __init__(
        self,
        cookie_name: str = "faultloop_session",
        *,
        path: str = "/",
        httponly: bool = True,
        secure: bool = False,
        samesite: Optional[str] = "lax",
    ):
        self.cookie_name = cookie_name
        self.path = path
        self.httponly = httponly
        self.secure = secure
        self.samesite = samesite

    def extract(self, request: RequestContext) -> Optional[SessionID]:
        """Session ID from the request cookie, None if absent or malformed."""
        value = request.cookies.get(self.cookie_name)
        if not value:
            return None
        try:
            return SessionID.from_string(value)
        except ValueError:
            return None

    def header(self, session: Session) -> str:
        """Set-Cookie header value for ``session``."""
        parts = [f"{self.cookie_name}={session.id}"]
        if self.path:
            parts.append(f"Path={self.path}")
        if self.httponly:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        if self.samesite:
            parts.append(f"SameSite={self.samesite.capitalize()}")
        return "; ".join(parts)
