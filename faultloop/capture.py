"""
Fault capture - the boundary between the running application and the
classification/report/loop pipeline.

Two entry points feed one pipeline:

- ``on_fault``: a fault signalled while the request is running
  (trigger_fault, the warnings bridge, or direct calls)
- ``on_termination``: called once when the request ends, with the
  uncaught exception recorded by the middleware, if any

Pipeline: classify -> build report -> persist -> (fatal) loop guard.
A fatal fault ends the request: ``on_fault`` raises RequestTerminated
carrying the redirect or loop-break response.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, Optional

from .config import CaptureConfig
from .diagnostics import DiagnosticsView
from .faults.classifier import (
    classify,
    fault_from_exception,
    handled_at_termination,
    is_reportable,
)
from .faults.core import Fault, FaultLoopError, Frame, RequestTerminated
from .loop_guard import LoopGuard, PrivilegeCheck
from .report import ReportBuilder
from .request import RequestContext
from .response import Response
from .sessions.core import Session
from .sessions.state import LoopState
from .sink import LogSink


_current_scope: ContextVar[Optional["FaultScope"]] = ContextVar("faultloop_scope", default=None)


# ============================================================================
# FaultScope
# ============================================================================

@dataclass
class FaultScope:
    """
    Per-request capture context.

    Attributes:
        request: Request snapshot
        session: Session carrying the loop state
        capture: FaultCapture handling this request
        started_at: Request start (seconds since epoch)
        last_fault: Uncaught fault pending for on_termination
        response: Response produced by a fatal fault
        notices: Inline notices to prefix to the application's output
        finished: on_termination has run
    """

    request: RequestContext
    session: Session
    capture: FaultCapture
    started_at: float = field(default_factory=time.time)
    last_fault: Optional[Fault] = None
    response: Optional[Response] = None
    notices: list[str] = field(default_factory=list)
    finished: bool = False

    @property
    def state(self) -> LoopState:
        return LoopState(self.session)

    @property
    def terminated(self) -> bool:
        """A fatal fault has already produced the response."""
        return self.response is not None


def current_scope() -> Optional[FaultScope]:
    """Scope of the request running in the current context, if any."""
    return _current_scope.get()


@contextmanager
def bind_scope(scope: FaultScope) -> Iterator[FaultScope]:
    """Make ``scope`` the current scope for the duration of the block."""
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        _current_scope.reset(token)


# ============================================================================
# FaultCapture
# ============================================================================

class FaultCapture:
    """
    Drives classification, reporting and loop handling for captured faults.

    Args:
        config: Capture configuration (defaults if None)
        diagnostics: Ambient state renderer
        builder: Report builder
        sink: Report persistence
        guard: Redirect-loop guard
        is_privileged: ``(request, session) -> bool`` for the loop-break page
        clock: Report timestamp source
        logger: Logger (default ``faultloop.capture``)

    Example:
        >>> capture = FaultCapture(CaptureConfig(log_to_file=True))
        >>> scope = capture.open_scope(request, session)
        >>> with bind_scope(scope):
        ...     run_application()
        >>> response = capture.on_termination(scope)
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        *,
        diagnostics: Optional[DiagnosticsView] = None,
        builder: Optional[ReportBuilder] = None,
        sink: Optional[LogSink] = None,
        guard: Optional[LoopGuard] = None,
        is_privileged: Optional[PrivilegeCheck] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or CaptureConfig()
        self.diagnostics = diagnostics or DiagnosticsView(self.config)
        self.builder = builder or ReportBuilder(self.diagnostics, clock=clock)
        self.sink = sink or LogSink(self.config)
        self.guard = guard or LoopGuard(self.config, self.diagnostics, is_privileged=is_privileged)
        self.logger = logger or logging.getLogger("faultloop.capture")

    def open_scope(self, request: RequestContext, session: Session) -> FaultScope:
        return FaultScope(request=request, session=session, capture=self)

    def on_fault(
        self,
        scope: FaultScope,
        code: int,
        message: str,
        filename: str,
        lineno: int,
        frames: Optional[tuple[Frame, ...]] = None,
    ) -> bool:
        """
        Handle a fault signalled while the request is running.

        Args:
            scope: Current request scope
            code: Severity code
            message: Fault message
            filename: Source file
            lineno: Source line
            frames: Call stack, outermost first (captured here if None)

        Returns:
            Whether the caller should also run its default handling

        Raises:
            RequestTerminated: The fault was fatal; carries the response
        """
        if not is_reportable(code, self.config.reporting_mask):
            return self.config.use_default_handler

        fault = Fault(code=code, message=message, filename=filename, lineno=lineno, frames=frames)
        response = self._process(scope, fault)
        if response is not None:
            raise RequestTerminated(response)

        return self.config.use_default_handler

    def record_exception(self, scope: FaultScope, exc: BaseException) -> Fault:
        """Record an uncaught exception as the fault pending for on_termination."""
        fault = fault_from_exception(exc)
        scope.last_fault = fault
        self.logger.debug(f"Recorded uncaught {type(exc).__name__} as fault code {fault.code}")
        return fault

    def on_termination(self, scope: FaultScope) -> Optional[Response]:
        """
        Finish the request.

        Without a pending fault, a request that did not end in a fatal
        fault clears the loop counter. A pending fault is processed only
        when the termination table handles its code.

        Returns:
            Response that replaces the application's output, or None
        """
        if scope.finished:
            return scope.response
        scope.finished = True

        fault = scope.last_fault
        if fault is None:
            if not scope.terminated:
                # A completed request ends the redirect sequence and its report chain.
                scope.state.reset_counter()
                scope.state.clear_backlog()
            return scope.response

        if not handled_at_termination(fault.code):
            self.logger.debug(f"Ignoring pending fault code {fault.code} at termination")
            return scope.response

        if not is_reportable(fault.code, self.config.reporting_mask):
            return scope.response

        return self._process(scope, fault) or scope.response

    def _process(self, scope: FaultScope, fault: Fault) -> Optional[Response]:
        classification = classify(fault.code)

        if self.config.output_error_code_inline:
            scope.notices.append(f"Error code: {fault.code}")

        state = scope.state
        report = self.builder.build(fault, classification, state, scope.request, scope.session)
        self.sink.persist(report, state)

        if not classification.fatal:
            state.clear_backlog()
            return None

        response = self.guard.handle(fault, state, scope.request, scope.session)
        scope.response = response
        return response


def verbose_output(start_time: Optional[float] = None) -> str:
    """
    Diagnostic dump for the current request.

    Args:
        start_time: Reference time for the load time (default: request start)

    Raises:
        FaultLoopError: Called outside a request scope
    """
    scope = current_scope()
    if scope is None:
        raise FaultLoopError("verbose_output() called outside a request scope")
    started = scope.started_at if start_time is None else start_time
    return scope.capture.diagnostics.verbose_dump(started, scope.request, scope.session)
