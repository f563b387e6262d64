"""
Request snapshots and response primitives.
"""

import pytest

from faultloop.request import RequestContext
from faultloop.response import Response

from conftest import ResponseCapture, make_request, make_scope


# ============================================================================
# RequestContext
# ============================================================================

class TestRequestContext:

    def test_from_scope(self):
        request = make_request(
            method="POST",
            path="/shop/cart",
            query_string="a=1&b=2&b=3",
            headers=[
                ("User-Agent", "pytest-agent"),
                ("Referer", "http://testserver/shop"),
                ("Cookie", "theme=dark; lang=en"),
            ],
            client=("10.0.0.7", 5000),
        )

        assert request.method == "POST"
        assert request.protocol == "HTTP/1.1"
        assert request.remote_addr == "10.0.0.7"
        assert request.user_agent == "pytest-agent"
        assert request.referrer == "http://testserver/shop"
        assert request.query == {"a": "1", "b": ["2", "3"]}
        assert request.cookies == {"theme": "dark", "lang": "en"}
        assert request.server["remote_port"] == 5000
        assert request.server["method"] == "POST"

    def test_repeated_headers_are_joined(self):
        request = make_request(headers=[("accept", "text/html"), ("accept", "text/plain")])
        assert request.headers["accept"] == "text/html, text/plain"

    def test_form_only_for_urlencoded(self):
        form = make_request(
            method="POST",
            headers=[("content-type", "application/x-www-form-urlencoded; charset=utf-8")],
            body=b"item=42&empty=",
        )
        assert form.form == {"item": "42", "empty": ""}

        json_body = make_request(
            method="POST",
            headers=[("content-type", "application/json")],
            body=b'{"item": 42}',
        )
        assert json_body.form == {}

    def test_malformed_cookie(self):
        request = make_request(headers=[("cookie", 'bad"cookie')])
        assert request.cookies == {}

    def test_missing_fields(self):
        request = RequestContext.from_scope({"type": "http"})
        assert request.path == "/"
        assert request.remote_addr is None
        assert request.user_agent is None

    @pytest.mark.parametrize("path,parent", [
        ("/shop/cart/checkout", "/shop/cart"),
        ("/shop/cart/", "/shop"),
        ("/shop", "/"),
        ("/", "/"),
    ])
    def test_parent_uri(self, path, parent):
        assert make_request(path=path).parent_uri == parent

    def test_request_uri(self):
        assert make_request(path="/a/b", query_string="x=1").request_uri == "/a/b?x=1"
        assert make_request(path="/a/b").request_uri == "/a/b"

    def test_script_name(self):
        assert make_request(path="/a/b").script_name == "/a/b"
        assert make_request(path="/b", root_path="/app").script_name == "/app/b"
        assert make_request(path="/app/b", root_path="/app").script_name == "/app/b"


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    def test_redirect(self):
        response = Response.redirect("/shop")
        assert response.status == 302
        assert response.body == b""
        assert response.location == "/shop"
        assert response.is_redirect
        assert "content-type" not in response.headers

    def test_redirect_status(self):
        assert Response.redirect("/shop", status=303).status == 303

    def test_html(self):
        response = Response.html("<p>x</p>", status=500)
        assert response.headers["content-type"] == "text/html; charset=utf-8"
        assert response.body_text == "<p>x</p>"
        assert not response.is_redirect

    def test_raw_headers(self):
        response = Response.text("hello")
        response.append_header("set-cookie", "a=1")
        response.append_header("Set-Cookie", "b=2")

        raw = response.raw_headers()
        assert (b"content-length", b"5") in raw
        assert [v for k, v in raw if k == b"set-cookie"] == [b"a=1", b"b=2"]

    @pytest.mark.asyncio
    async def test_send(self):
        capture = ResponseCapture()
        await Response.text("hello", status=201).send(capture)

        assert [m["type"] for m in capture.messages] == ["http.response.start", "http.response.body"]
        assert capture.status == 201
        assert capture.body == b"hello"
        assert capture.headers["content-type"] == "text/plain; charset=utf-8"

    def test_scope_helper_round_trip(self):
        scope = make_scope(path="/x", query_string="q=1")
        assert RequestContext.from_scope(scope).request_uri == "/x?q=1"
