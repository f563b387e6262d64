"""
Redirect-loop guard.

State machine over the session's consecutive-fault counter, evaluated once
per fatal fault:

    counter absent            -> counter = 1, redirect to the parent resource
    counter + 1 <= threshold  -> store it, redirect to the same URI
    otherwise                 -> loop-break: terminal page, all loop fields cleared

Any request that completes without a fatal fault clears the counter (see
FaultCapture.on_termination), so only an unbroken chain reaches the break.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional
from urllib.parse import quote

from .debug.pages import render_admin_loop_page, render_loop_page
from .diagnostics import DiagnosticsView
from .faults.core import Fault
from .request import RequestContext
from .response import Response
from .sessions.core import Session
from .sessions.state import LoopState

if TYPE_CHECKING:
    from .config import CaptureConfig


PrivilegeCheck = Callable[[RequestContext, Optional[Session]], bool]

_PATH_SAFE = "/:@!$&'()*+,;=-._~%"


class LoopAction(str, Enum):
    REDIRECT_PARENT = "redirect_parent"
    REDIRECT_SELF = "redirect_self"
    BREAK = "break"


@dataclass(frozen=True)
class LoopDecision:
    """
    Outcome of one evaluation.

    Attributes:
        action: What the client sees
        counter: Consecutive-fault count including this fault
        location: Redirect target (None on BREAK)
    """
    action: LoopAction
    counter: int
    location: Optional[str] = None

    @property
    def is_break(self) -> bool:
        return self.action is LoopAction.BREAK


def _location(path: str, query_string: str = "") -> str:
    location = quote(path, safe=_PATH_SAFE)
    if query_string:
        location = f"{location}?{query_string}"
    return location


class LoopGuard:
    """
    Decides redirect vs. terminal response for fatal faults.

    Args:
        config: Capture configuration (``break_threshold``, ``redirect_status``)
        diagnostics: Renders the ambient dump on the admin page
        is_privileged: ``(request, session) -> bool``; privileged callers get
            the verbose loop-break page
        logger: Logger (default ``faultloop.loop``)
    """

    def __init__(
        self,
        config: CaptureConfig,
        diagnostics: DiagnosticsView,
        is_privileged: Optional[PrivilegeCheck] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.diagnostics = diagnostics
        self.is_privileged = is_privileged
        self.logger = logger or logging.getLogger("faultloop.loop")

    def evaluate(self, state: LoopState, request: RequestContext) -> LoopDecision:
        """
        Advance the counter for one more fatal fault.

        The counter is written for redirect outcomes only; a BREAK leaves it
        to ``handle`` to clear.
        """
        current = state.counter
        if current is None:
            state.counter = 1
            return LoopDecision(LoopAction.REDIRECT_PARENT, 1, _location(request.parent_uri))

        counter = current + 1
        if counter <= self.config.break_threshold:
            state.counter = counter
            return LoopDecision(
                LoopAction.REDIRECT_SELF,
                counter,
                _location(request.path, request.query_string),
            )

        return LoopDecision(LoopAction.BREAK, counter)

    def handle(
        self,
        fault: Fault,
        state: LoopState,
        request: RequestContext,
        session: Optional[Session] = None,
    ) -> Response:
        """
        Evaluate and build the client response for a fatal fault.

        Returns:
            Body-less redirect, or the 500 loop-break page
        """
        decision = self.evaluate(state, request)

        if not decision.is_break:
            self.logger.warning(
                f"Fatal fault #{decision.counter} on {request.request_uri}, "
                f"redirecting to {decision.location}"
            )
            return Response.redirect(decision.location, status=self.config.redirect_status)

        response = self.render_break(fault, request, session if session is not None else state.session)
        state.clear()
        self.logger.error(
            f"Redirect loop on {request.request_uri} broken after {decision.counter} consecutive fatal faults"
        )
        return response

    def render_break(
        self,
        fault: Fault,
        request: RequestContext,
        session: Optional[Session],
    ) -> Response:
        if self._privileged(request, session):
            snapshot = self.diagnostics.ambient_snapshot(request, session)
            return Response.html(render_admin_loop_page(fault, snapshot), status=500)
        return Response.html(render_loop_page(), status=500)

    def _privileged(self, request: RequestContext, session: Optional[Session]) -> bool:
        if self.is_privileged is None:
            return False
        try:
            return bool(self.is_privileged(request, session))
        except Exception as e:
            self.logger.error(f"Privilege check failed, using the user page: {e}", exc_info=True)
            return False
