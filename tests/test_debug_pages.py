"""
Tests for the loop-break pages.
"""

from faultloop.config import CaptureConfig
from faultloop.debug import ADMIN_MESSAGE, USER_MESSAGE, render_admin_loop_page, render_loop_page
from faultloop.diagnostics import DiagnosticsView
from faultloop.faults import Fault

from conftest import make_request


class TestUserPage:

    def test_plain_message(self):
        assert render_loop_page() == "Error: Page loop occurred"
        assert render_loop_page() == USER_MESSAGE


class TestAdminPage:

    def test_contains_fault_tree(self):
        fault = Fault(code=1, message="division error", filename="calc", lineno=42)
        page = render_admin_loop_page(fault)

        assert page.startswith(f"<br />\n<br />\n{ADMIN_MESSAGE}<br />\n<pre>")
        assert "[type] =&gt; 1" in page
        assert "[message] =&gt; division error" in page
        assert "[file] =&gt; calc" in page
        assert "[line] =&gt; 42" in page

    def test_fault_message_is_escaped(self):
        fault = Fault(code=1, message="<script>alert(1)</script>", filename="calc", lineno=1)
        page = render_admin_loop_page(fault)
        assert "<script>" not in page
        assert "&lt;script&gt;" in page

    def test_snapshot_is_not_escaped_twice(self, session):
        session["cart"] = "a & b"
        snapshot = DiagnosticsView(CaptureConfig()).ambient_snapshot(make_request(), session)
        fault = Fault(code=1, message="boom", filename="calc", lineno=1)

        page = render_admin_loop_page(fault, snapshot)

        assert "<b>Session</b><pre>" in page
        assert "[cart] =&gt; a &amp; b" in page
        assert "&amp;amp;" not in page

    def test_without_snapshot(self):
        page = render_admin_loop_page(Fault(code=1, message="boom", filename="calc", lineno=1))
        assert page.endswith("</pre>")
