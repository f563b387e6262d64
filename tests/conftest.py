"""
Shared test fixtures and helpers for the FaultLoop test suite.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytest

from faultloop.capture import FaultCapture
from faultloop.config import CaptureConfig
from faultloop.faults import Fault, classify
from faultloop.report import DiagnosticReport
from faultloop.request import RequestContext
from faultloop.sessions import LoopState, Session


FIXED_NOW = datetime(2014, 3, 5, 2, 39)


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
    root_path: str = "",
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": root_path,
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = []
        for i, chunk in enumerate(chunks):
            messages.append({
                "type": "http.request",
                "body": chunk,
                "more_body": i < len(chunks) - 1,
            })
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    client: Optional[tuple] = None,
    root_path: str = "",
) -> RequestContext:
    """Build a RequestContext the way the middleware does."""
    scope = make_scope(
        method=method,
        path=path,
        query_string=query_string,
        headers=headers,
        client=client,
        root_path=root_path,
    )
    return RequestContext.from_scope(scope, body)


class ResponseCapture:
    """Captures what gets sent through ASGI ``send``."""

    def __init__(self):
        self.messages: list = []
        self.status: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self.raw_headers: list = []
        self.body = b""

    async def __call__(self, message: dict):
        self.messages.append(message)
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.raw_headers = list(message.get("headers", []))
            for name, value in self.raw_headers:
                key = name.decode("latin-1") if isinstance(name, bytes) else name
                val = value.decode("latin-1") if isinstance(value, bytes) else value
                self.headers[key.lower()] = val
        elif message["type"] == "http.response.body":
            self.body += message.get("body", b"")


# ============================================================================
# Fault Helpers
# ============================================================================


def make_fault(code: int = 1, message: str = "division error", filename: str = "calc", lineno: int = 42) -> Fault:
    return Fault(code=code, message=message, filename=filename, lineno=lineno, frames=())


def make_report(code: int = 1, text: str = "<b>report</b>") -> DiagnosticReport:
    return DiagnosticReport(
        heading="",
        classification=classify(code),
        fault=make_fault(code),
        stack_trace=(),
        request=RequestContext(),
        generated_at=FIXED_NOW,
        text=text,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def config():
    return CaptureConfig()


@pytest.fixture
def session():
    return Session()


@pytest.fixture
def state(session):
    return LoopState(session)


@pytest.fixture
def request_ctx():
    return make_request(
        path="/shop/cart/checkout",
        query_string="step=2",
        headers=[("user-agent", "pytest-agent")],
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def capture(config, fixed_clock):
    return FaultCapture(config, clock=fixed_clock)


@pytest.fixture
def fault_scope(capture, request_ctx, session):
    return capture.open_scope(request_ctx, session)
