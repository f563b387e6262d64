"""
Response primitives - the small set of HTTP responses a fault can produce.

A fault ends the request with either a redirect (no body) or a terminal
page. Responses are plain values until ``send()`` emits them over ASGI.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

Send = Callable[[Dict[str, Any]], Awaitable[None]]


class Response:
    """
    HTTP response with a fully materialized body.

    Args:
        content: Response body (str is encoded with ``encoding``)
        status: HTTP status code
        headers: Response headers
        media_type: Content-Type override
        encoding: Text encoding (default utf-8)
    """

    def __init__(
        self,
        content: bytes | str = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding
        self.body = content.encode(encoding) if isinstance(content, str) else content

        self._headers: Dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers and self.body:
            self._headers["content-type"] = (
                f"text/plain; charset={encoding}" if isinstance(content, str) else "application/octet-stream"
            )

        self._extra: List[Tuple[str, str]] = []

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def body_text(self) -> str:
        return self.body.decode(self.encoding)

    @property
    def location(self) -> Optional[str]:
        return self._headers.get("location")

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and "location" in self._headers

    def append_header(self, name: str, value: str) -> None:
        """Add a header that may repeat (e.g. Set-Cookie)."""
        self._extra.append((name.lower(), value))

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> Response:
        """Create HTML response."""
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> Response:
        """Create plain text response."""
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def redirect(
        cls,
        url: str,
        status: int = 302,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        """
        Create redirect response.

        Args:
            url: Redirect target
            status: HTTP status (default 302 Found)
            headers: Additional headers

        Returns:
            Redirect response with an empty body
        """
        redirect_headers = {"location": url}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers)

    # ========================================================================
    # ASGI
    # ========================================================================

    def raw_headers(self) -> List[Tuple[bytes, bytes]]:
        headers = dict(self._headers)
        headers["content-length"] = str(len(self.body))
        raw = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]
        raw.extend((k.encode("latin-1"), v.encode("latin-1")) for k, v in self._extra)
        return raw

    async def send(self, send: Send) -> None:
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self.raw_headers(),
        })
        await send({"type": "http.response.body", "body": self.body, "more_body": False})

    def __repr__(self) -> str:
        return f"Response(status={self.status}, location={self.location!r}, bytes={len(self.body)})"
