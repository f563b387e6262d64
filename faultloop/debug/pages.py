"""
FaultLoop Debug Pages - terminal pages shown when a redirect loop is broken.

Two variants:
- the user page: a bare "page loop occurred" notice, no diagnostics
- the admin page: the fault that broke the loop plus the ambient state dump

Templates are rendered with Jinja2 and autoescaping; the ambient snapshot is
already escaped and is passed through as Markup.
"""

from __future__ import annotations

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup

from ..diagnostics import render_tree
from ..faults.core import Fault


USER_MESSAGE = "Error: Page loop occurred"
ADMIN_MESSAGE = "Admin Error Debug Enabled: Page loop occurred"


_TEMPLATES = {
    "loop.html": "{{ message }}",
    "admin_loop.html": (
        "<br />\n<br />\n{{ message }}<br />\n"
        "<pre>{{ fault_tree }}</pre>"
        "{% if snapshot %}\n{{ snapshot }}{% endif %}"
    ),
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(
        enabled_extensions=["html", "htm", "xml"],
        default_for_string=True,
    ),
)


def render_loop_page() -> str:
    """Render the page shown to ordinary callers."""
    return _env.get_template("loop.html").render(message=USER_MESSAGE)


def render_admin_loop_page(fault: Fault, snapshot_html: str = "") -> str:
    """
    Render the page shown to privileged callers.

    Args:
        fault: Fault that broke the loop
        snapshot_html: Escaped ambient snapshot (see DiagnosticsView)

    Returns:
        HTML text
    """
    return _env.get_template("admin_loop.html").render(
        message=ADMIN_MESSAGE,
        fault_tree=render_tree(fault),
        snapshot=Markup(snapshot_html),
    )
