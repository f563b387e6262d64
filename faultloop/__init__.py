"""
FaultLoop - request-scoped fault capture with redirect-loop protection.

A fatal fault during a request is classified, reported (stack trace,
request context, session state) and answered with a redirect; a page that
keeps failing degrades to a terminal "page loop occurred" response.

Example:
    >>> from faultloop import FaultCaptureMiddleware, CaptureConfig
    >>> app = FaultCaptureMiddleware(app, config=CaptureConfig(log_to_file=True))
"""

__version__ = "0.1.0"

from .faults import (
    ErrorLevel,
    SeverityClassification,
    Frame,
    Fault,
    FaultLoopError,
    ConfigError,
    RequestTerminated,
    classify,
    is_reportable,
    handled_at_termination,
    fault_from_exception,
)
from .config import CaptureConfig, ConfigLoader
from .request import RequestContext
from .response import Response
from .sessions import Session, SessionID, LoopState, MemoryStore, CookieTransport
from .diagnostics import DiagnosticsView, Renderable, render_tree
from .report import DiagnosticReport, ReportBuilder
from .sink import LogSink
from .loop_guard import LoopAction, LoopDecision, LoopGuard
from .capture import FaultCapture, FaultScope, current_scope, bind_scope, verbose_output
from .hooks import trigger_fault, install_warning_bridge
from .middleware import FaultCaptureMiddleware, ResponseBuffer

__all__ = [
    "__version__",
    "ErrorLevel",
    "SeverityClassification",
    "Frame",
    "Fault",
    "FaultLoopError",
    "ConfigError",
    "RequestTerminated",
    "classify",
    "is_reportable",
    "handled_at_termination",
    "fault_from_exception",
    "CaptureConfig",
    "ConfigLoader",
    "RequestContext",
    "Response",
    "Session",
    "SessionID",
    "LoopState",
    "MemoryStore",
    "CookieTransport",
    "DiagnosticsView",
    "Renderable",
    "render_tree",
    "DiagnosticReport",
    "ReportBuilder",
    "LogSink",
    "LoopAction",
    "LoopDecision",
    "LoopGuard",
    "FaultCapture",
    "FaultScope",
    "current_scope",
    "bind_scope",
    "verbose_output",
    "trigger_fault",
    "install_warning_bridge",
    "FaultCaptureMiddleware",
    "ResponseBuffer",
]
