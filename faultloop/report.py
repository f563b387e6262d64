"""
Report assembly.

A DiagnosticReport is the HTML-safe text persisted for every reportable
fault: the chained heading (backlog), one stack trace per chain, the request
context, the ambient state snapshot and a generation timestamp.
"""

from __future__ import annotations

import html
import inspect
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .diagnostics import DiagnosticsView
from .faults.core import Fault, Frame, SeverityClassification, frames_from_stack
from .request import RequestContext
from .sessions.core import Session
from .sessions.state import LoopState


PLACEHOLDER = "NA"
STACK_TRACE_MARKER = "Stack trace:"
TIMESTAMP_FORMAT = "%b %d, %Y at %I:%M %p"

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

# A rendered trace always directly follows a heading's closing <br />;
# escaped fault messages can never produce this sequence.
_TRACE_OPENER = "<br />" + STACK_TRACE_MARKER


@dataclass(frozen=True)
class DiagnosticReport:
    """
    Assembled report for one fault.

    Attributes:
        heading: Backlog-prefixed heading (includes the chain's stack trace)
        classification: Classification of the fault
        fault: The fault being reported
        stack_trace: Frames outermost first, package-internal frames removed
        request: Request the fault occurred in
        generated_at: Generation time
        text: Full sanitized report
    """

    heading: str
    classification: SeverityClassification
    fault: Fault
    stack_trace: tuple[Frame, ...]
    request: RequestContext
    generated_at: datetime
    text: str

    def __str__(self) -> str:
        return self.text


# ============================================================================
# Helpers
# ============================================================================

def is_internal(filename: str) -> bool:
    """True for source files that belong to this package."""
    try:
        path = os.path.abspath(filename)
    except (TypeError, ValueError):
        return False
    return path == _PACKAGE_DIR or path.startswith(_PACKAGE_DIR + os.sep)


def render_stack_trace(frames: Iterable[Frame]) -> str:
    """
    Render frames outermost first, one numbered line each.

    Frames from this package are left out; numbering still counts them so
    gaps show where internal calls were.
    """
    lines = [STACK_TRACE_MARKER]
    for index, frame in enumerate(frames, 1):
        if is_internal(frame.filename):
            continue
        owner = f"{frame.owner}." if frame.owner else ""
        where = f" on line {frame.lineno}" if frame.lineno is not None else ""
        name = html.escape(f"{os.path.basename(frame.filename)} : {owner}{frame.function}()")
        lines.append(f"#{index} {name}{where}")
    return "\n".join(lines) + "\n"


def sanitize(text: str) -> str:
    """Strip quote characters and convert every line break to ``<br />``."""
    text = text.replace("'", "").replace('"', "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.replace("\n", "<br />")


def _value(value: Optional[str]) -> str:
    return html.escape(value) if value else PLACEHOLDER


# ============================================================================
# ReportBuilder
# ============================================================================

class ReportBuilder:
    """
    Builds DiagnosticReports and maintains the session backlog.

    Args:
        diagnostics: Renders the ambient snapshot section
        clock: Source of the generation timestamp
    """

    def __init__(
        self,
        diagnostics: DiagnosticsView,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.diagnostics = diagnostics
        self.clock = clock or datetime.now

    def build(
        self,
        fault: Fault,
        classification: SeverityClassification,
        state: LoopState,
        request: RequestContext,
        session: Optional[Session] = None,
    ) -> DiagnosticReport:
        """
        Assemble the report for ``fault``.

        The backlog in ``state`` is extended with this fault's heading (and
        the stack trace, if the chain has none yet) so the next chained
        report starts from it.

        Args:
            fault: Captured fault
            classification: Its classification
            state: Loop state of the current session
            request: Request the fault occurred in
            session: Session rendered in the snapshot (defaults to the
                session behind ``state``)

        Returns:
            DiagnosticReport
        """
        if session is None:
            session = state.session

        frames = fault.frames
        if frames is None:
            frames = frames_from_stack(inspect.currentframe())
        visible = tuple(frame for frame in frames if not is_internal(frame.filename))

        text = state.backlog
        chain_has_trace = _TRACE_OPENER in text
        text += "<b>Application Error</b><br />"
        text += f"<b>{classification.category}:</b> {html.escape(fault.message)}<br />"
        text += f"<b>{html.escape(fault.filename)}</b> on line <b>{fault.lineno}</b><br />"
        state.backlog = text

        if not chain_has_trace:
            text += render_stack_trace(frames)
            state.backlog = text

        heading = text
        text += self._request_section(request)
        text += self.diagnostics.ambient_snapshot(request, session, strip_session_faults=True)

        generated_at = self.clock()
        text = sanitize(text)
        text += f"<br /><b>Generated:</b> {generated_at.strftime(TIMESTAMP_FORMAT)}<br /><br />"

        return DiagnosticReport(
            heading=heading,
            classification=classification,
            fault=fault,
            stack_trace=visible,
            request=request,
            generated_at=generated_at,
            text=text,
        )

    def _request_section(self, request: RequestContext) -> str:
        lines = [
            "",
            "<b>Additional Information</b>",
            f"<b>Remote Address:</b> {_value(request.remote_addr)}",
            f"<b>Browser:</b> {_value(request.user_agent)}",
        ]
        if request.referrer:
            lines.append(f"<b>Previous Page:</b> {html.escape(request.referrer)}")
        lines.extend([
            f"<b>Query:</b> {_value(request.query_string)}",
            f"<b>Method:</b> {_value(request.method)}",
            f"<b>Script:</b> {_value(request.script_name)}",
            f"<b>URI:</b> {_value(request.request_uri)}",
            f"<b>Protocol:</b> {_value(request.protocol)}",
            "",
        ])
        return "\n".join(lines) + "\n"
