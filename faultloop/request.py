"""
Request context - immutable snapshot of the request a fault occurred in.

Built once per request from the ASGI scope (and, for urlencoded forms, the
request body) so that reports and diagnostics never touch the live request.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _collapse(items: list[tuple[str, str]]) -> dict[str, Any]:
    """Group repeated keys into lists, keep single values scalar."""
    grouped: dict[str, list[str]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}


@dataclass(frozen=True)
class RequestContext:
    """
    Snapshot of one HTTP request.

    Attributes:
        method: HTTP method
        path: Request path (without query string)
        query_string: Raw query string (decoded)
        root_path: Mount prefix of the application
        protocol: e.g. ``HTTP/1.1``
        remote_addr: Client address, if known
        user_agent: User-Agent header, if sent
        referrer: Referer header, if sent
        headers: Lower-cased request headers
        query: Parsed query parameters
        form: Parsed urlencoded form fields
        cookies: Parsed cookies
        server: Server-side variables derived from the ASGI scope
    """

    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    root_path: str = ""
    protocol: str = "HTTP/1.1"
    remote_addr: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    server: Mapping[str, Any] = field(default_factory=dict)

    @property
    def script_name(self) -> str:
        """Resolved path of the handling script (mount prefix + path)."""
        if self.root_path and not self.path.startswith(self.root_path):
            return f"{self.root_path.rstrip('/')}{self.path}"
        return self.path

    @property
    def request_uri(self) -> str:
        """Path plus query string, as the client requested it."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    @property
    def parent_uri(self) -> str:
        """The enclosing resource: the request path with its last segment stripped."""
        trimmed = self.path.rstrip("/")
        if not trimmed:
            return "/"
        return posixpath.dirname(trimmed) or "/"

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any], body: bytes = b"") -> RequestContext:
        """
        Build a snapshot from an ASGI HTTP scope.

        Args:
            scope: ASGI connection scope
            body: Request body; parsed only for urlencoded forms

        Returns:
            RequestContext
        """
        headers: dict[str, str] = {}
        for name, value in scope.get("headers", ()):
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            headers[key] = f"{headers[key]}, {text}" if key in headers else text

        query_string = scope.get("query_string", b"")
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")

        cookies: dict[str, str] = {}
        if headers.get("cookie"):
            jar = SimpleCookie()
            try:
                jar.load(headers["cookie"])
            except CookieError:
                pass
            else:
                cookies = {key: morsel.value for key, morsel in jar.items()}

        form: dict[str, Any] = {}
        content_type = headers.get("content-type", "").split(";")[0].strip().lower()
        if body and content_type == FORM_CONTENT_TYPE:
            form = _collapse(parse_qsl(body.decode("utf-8", "replace"), keep_blank_values=True))

        client = scope.get("client")
        server_addr = scope.get("server")
        http_version = scope.get("http_version", "1.1")

        server = {
            "scheme": scope.get("scheme", "http"),
            "http_version": http_version,
            "server_addr": server_addr[0] if server_addr else None,
            "server_port": server_addr[1] if server_addr else None,
            "remote_addr": client[0] if client else None,
            "remote_port": client[1] if client else None,
            "root_path": scope.get("root_path", ""),
            "path": scope.get("path", "/"),
            "query_string": query_string,
            "method": scope.get("method", "GET"),
            "headers": dict(headers),
        }

        return cls(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/") or "/",
            query_string=query_string,
            root_path=scope.get("root_path", ""),
            protocol=f"HTTP/{http_version}",
            remote_addr=client[0] if client else None,
            user_agent=headers.get("user-agent"),
            referrer=headers.get("referer"),
            headers=headers,
            query=_collapse(parse_qsl(query_string, keep_blank_values=True)),
            form=form,
            cookies=cookies,
            server=server,
        )
