"""
FaultCaptureMiddleware - ASGI integration of the capture pipeline.

Per HTTP request:
1. Buffer urlencoded request bodies (for the Post block) and replay them
2. Load or create the session
3. Bind a FaultScope and run the application into a ResponseBuffer
4. Record uncaught exceptions, run on_termination exactly once
5. Commit the session, then send either the fault response or the
   buffered application response
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, MutableMapping, Optional, Tuple

from .capture import FaultCapture, bind_scope
from .config import CaptureConfig
from .faults.core import RequestTerminated
from .loop_guard import PrivilegeCheck
from .request import FORM_CONTENT_TYPE, RequestContext
from .response import Response, Send
from .sessions.core import Session
from .sessions.store import MemoryStore, SessionStore
from .sessions.transport import CookieTransport

Scope = MutableMapping[str, Any]
Message = Dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


# ============================================================================
# ResponseBuffer
# ============================================================================

class ResponseBuffer:
    """
    Collects the application's response instead of sending it.

    Lets a fault discard everything the application produced before a
    redirect or loop-break page is sent.
    """

    def __init__(self):
        self.status: Optional[int] = None
        self.headers: List[Tuple[bytes, bytes]] = []
        self.body = bytearray()
        self.complete = False

    @property
    def started(self) -> bool:
        return self.status is not None

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = list(message.get("headers", []))
        elif message["type"] == "http.response.body":
            self.body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                self.complete = True

    def discard(self) -> None:
        self.status = None
        self.headers = []
        self.body.clear()
        self.complete = False

    def content_type(self) -> str:
        for name, value in self.headers:
            if name.lower() == b"content-type":
                return value.decode("latin-1").lower()
        return ""

    async def flush(
        self,
        send: Send,
        *,
        notices: Iterable[str] = (),
        extra_headers: Iterable[Tuple[bytes, bytes]] = (),
    ) -> None:
        """
        Send the buffered response.

        Inline notices are prefixed to ``text/*`` bodies only; the
        content-length header is recomputed.
        """
        body = bytes(self.body)
        notices = list(notices)
        content_type = self.content_type()
        if notices and content_type.startswith("text/"):
            separator = "<br />\n" if "html" in content_type else "\n"
            prefix = "".join(f"{notice}{separator}" for notice in notices)
            body = prefix.encode("utf-8") + body

        headers = [(k, v) for k, v in self.headers if k.lower() != b"content-length"]
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
        headers.extend(extra_headers)

        await send({"type": "http.response.start", "status": self.status, "headers": headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})


# ============================================================================
# FaultCaptureMiddleware
# ============================================================================

class FaultCaptureMiddleware:
    """
    ASGI middleware running every HTTP request inside a FaultScope.

    Args:
        app: Wrapped ASGI application
        capture: FaultCapture (built from ``config`` if None)
        config: Capture configuration, used when ``capture`` is None
        store: Session store (in-memory if None)
        transport: Session id transport (cookie named by the config if None)
        is_privileged: Privilege check, used when ``capture`` is None

    Example:
        >>> app = FaultCaptureMiddleware(app, config=CaptureConfig(log_to_file=True))
    """

    def __init__(
        self,
        app: ASGIApp,
        capture: Optional[FaultCapture] = None,
        *,
        config: Optional[CaptureConfig] = None,
        store: Optional[SessionStore] = None,
        transport: Optional[CookieTransport] = None,
        is_privileged: Optional[PrivilegeCheck] = None,
    ):
        self.app = app
        self.capture = capture or FaultCapture(config, is_privileged=is_privileged)
        self.config = self.capture.config
        self.store = store if store is not None else MemoryStore()
        self.transport = transport or CookieTransport(self.config.session_cookie)
        self.logger = logging.getLogger("faultloop.middleware")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        receive, body = await self._buffer_body(scope, receive)
        request = RequestContext.from_scope(scope, body)
        session = await self._load_session(request)

        fault_scope = self.capture.open_scope(request, session)
        buffer = ResponseBuffer()

        with bind_scope(fault_scope):
            try:
                await self.app(scope, receive, buffer.send)
            except RequestTerminated as terminated:
                fault_scope.response = terminated.response
            except Exception as exc:
                self.logger.error(f"Uncaught {type(exc).__name__} on {request.request_uri}: {exc}")
                self.capture.record_exception(fault_scope, exc)

            response = self.capture.on_termination(fault_scope)

        await self._save_session(session)
        cookie = self.transport.header(session)

        if response is None and (fault_scope.last_fault is not None or not buffer.started):
            response = Response.text("Internal Server Error", status=500)

        if response is not None:
            buffer.discard()
            response.append_header("set-cookie", cookie)
            await response.send(send)
            return

        await buffer.flush(send, notices=fault_scope.notices, extra_headers=[(b"set-cookie", cookie.encode("latin-1"))])

    async def _buffer_body(self, scope: Scope, receive: Receive) -> Tuple[Receive, bytes]:
        """Read a urlencoded body up front and hand the app a replaying receive."""
        content_type = ""
        for name, value in scope.get("headers", ()):
            if name.lower() == b"content-type":
                content_type = value.decode("latin-1").split(";")[0].strip().lower()
                break
        if content_type != FORM_CONTENT_TYPE:
            return receive, b""

        chunks: List[bytes] = []
        disconnected = False
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                disconnected = True
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        body = b"".join(chunks)

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                if disconnected:
                    return {"type": "http.disconnect"}
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        return replay, body

    async def _load_session(self, request: RequestContext) -> Session:
        session_id = self.transport.extract(request)
        if session_id is not None:
            try:
                session = await self.store.load(session_id)
            except Exception as e:
                self.logger.error(f"Session load failed: {e}", exc_info=True)
                session = None
            if session is not None:
                return session
        return Session()

    async def _save_session(self, session: Session) -> None:
        try:
            await self.store.save(session)
        except Exception as e:
            self.logger.error(f"Session commit failed: {e}", exc_info=True)
