"""
Diagnostics - ambient state rendering.

Renders the session, query parameters, posted form fields and (optionally)
cookies, server variables and the process environment as labelled,
HTML-escaped blocks. Used inside every fault report and on demand for
operator diagnostic pages.

Arbitrary values render through a key/value tree: mappings, sequences and
dataclasses flatten natively; any other object can take part by exposing
``flatten()`` (see ``Renderable``).
"""

from __future__ import annotations

import dataclasses
import html
import os
import re
import time
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, Protocol, runtime_checkable

from .request import RequestContext
from .sessions.core import Session
from .sessions.state import FAULT_FIELDS

if TYPE_CHECKING:
    from .config import CaptureConfig


_INDENT = "    "
_LINE_BREAK = re.compile(r"(\r\n|\r|\n)")


@runtime_checkable
class Renderable(Protocol):
    """Anything that can present itself as label/value pairs."""

    def flatten(self) -> Iterable[tuple[Any, Any]]:
        ...


# ============================================================================
# Key/value tree
# ============================================================================

def flatten(value: Any) -> Optional[list[tuple[Any, Any]]]:
    """
    Label/value pairs of a structured value, or None for a scalar.

    Args:
        value: Any object

    Returns:
        Pairs in display order, None when ``value`` is a leaf
    """
    if isinstance(value, Renderable) and not isinstance(value, type):
        return list(value.flatten())
    if isinstance(value, Mapping):
        return list(value.items())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(enumerate(value))
    return None


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value)


def render_tree(value: Any) -> str:
    """
    Render ``value`` as an indented key/value tree.

    Example:
        >>> print(render_tree({"user": "ann", "roles": ["admin"]}))
        {
            [user] => ann
            [roles] => {
                [0] => admin
            }
        }
    """
    lines: list[str] = []
    _render(value, 0, lines, set())
    return "\n".join(lines) + "\n"


def _render(value: Any, depth: int, lines: list[str], seen: set[int]) -> None:
    pairs = flatten(value)
    if pairs is None:
        lines.append(_scalar(value))
        return

    if id(value) in seen:
        lines.append("*RECURSION*")
        return
    seen = seen | {id(value)}

    pad = _INDENT * depth
    lines.append("{")
    for label, item in pairs:
        child: list[str] = []
        _render(item, depth + 1, child, seen)
        lines.append(f"{pad}{_INDENT}[{label}] => {child[0]}")
        lines.extend(child[1:])
    lines.append(f"{pad}}}")


def render_block(label: str, value: Any) -> str:
    """Bolded label followed by the escaped tree inside ``<pre>``."""
    return f"<b>{label}</b><pre>{html.escape(render_tree(value), quote=True)}</pre>"


def nl2br(text: str) -> str:
    """Insert ``<br />`` before every line break."""
    return _LINE_BREAK.sub(r"<br />\1", text)


# ============================================================================
# DiagnosticsView
# ============================================================================

class DiagnosticsView:
    """
    Renders ambient request/session state.

    Args:
        config: Capture configuration (``log_all_ambient_state`` adds the
            cookie, server and environment blocks)
        clock: Seconds-since-epoch source, used for load times
        environ: Environment mapping rendered in the Env block
    """

    def __init__(
        self,
        config: CaptureConfig,
        clock: Callable[[], float] = time.time,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.clock = clock
        self.environ = environ

    def ambient_snapshot(
        self,
        request: Optional[RequestContext],
        session: Optional[Session],
        strip_session_faults: bool = False,
    ) -> str:
        """
        Render the ambient state blocks.

        Args:
            request: Request whose query/form/cookies/server data is shown
            session: Session whose data is shown (block omitted if None)
            strip_session_faults: Drop the stored report fields from the
                session block so a report never embeds itself

        Returns:
            HTML fragment, one block per line
        """
        request = request or RequestContext()
        blocks: list[str] = []

        if session is not None:
            data = session.snapshot()
            if strip_session_faults:
                for key in FAULT_FIELDS:
                    data.pop(key, None)
            blocks.append(render_block("Session", data))

        blocks.append(render_block("Get", dict(request.query)))
        blocks.append(render_block("Post", dict(request.form)))

        if self.config.log_all_ambient_state:
            environ = self.environ if self.environ is not None else os.environ
            blocks.append(render_block("Cookie", dict(request.cookies)))
            blocks.append(render_block("Server", dict(request.server)))
            blocks.append(render_block("Env", dict(environ)))

        return "".join(f"{block}\n" for block in blocks)

    def load_time(self, start_time: float) -> float:
        return round(self.clock() - start_time, 4)

    def verbose_dump(
        self,
        start_time: float,
        request: Optional[RequestContext],
        session: Optional[Session],
    ) -> str:
        """Load time plus the full ambient snapshot, with HTML line breaks."""
        output = f"\n\n<b>Load Time:</b> {self.load_time(start_time)} seconds\n\n"
        output += self.ambient_snapshot(request, session)
        return nl2br(output)
