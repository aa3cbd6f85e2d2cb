"""
Request Context Middleware Tests.

WHAT: Unit tests for the RequestContextMiddleware and the request id log filter.

WHY: The request id ties every log line of a quote change to the request
that caused it, and the actor header feeds created_by. These tests ensure:
- Client IP extraction (direct and through proxies)
- Request IDs are honoured when supplied and generated otherwise
- The acting user is captured from X-Actor-Id
- Context is cleared after each request
- Log records carry the request id

HOW: Tests use hand-built Starlette requests and a stub call_next.
"""

import logging

import pytest
from unittest.mock import MagicMock
from starlette.requests import Request
from starlette.responses import Response

from quote_engine.middleware.request_context import (
    MAX_HEADER_VALUE_LENGTH,
    RequestContext,
    RequestContextMiddleware,
    RequestIdLogFilter,
    _request_context,
    get_client_ip,
    get_request_context,
)


def _make_request(
    headers: dict = None,
    client_host: str = None,
    method: str = "GET",
    path: str = "/api/quotes",
) -> Request:
    """
    Create a request with the given headers and client.

    Args:
        headers: Dictionary of headers
        client_host: Client IP address
        method: HTTP method
        path: Request path

    Returns:
        Request object
    """
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "query_string": b"",
        "client": (client_host, 12345) if client_host else None,
    }
    request = Request(scope)
    request._url = type("URL", (), {"path": path})()
    return request


async def _ok(request: Request) -> Response:
    return Response(content="OK", status_code=200)


class TestGetClientIp:
    """Tests for the get_client_ip function."""

    def test_prefers_x_real_ip(self):
        request = _make_request(
            headers={"X-Real-IP": "192.168.1.100", "X-Forwarded-For": "203.0.113.50"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "192.168.1.100"

    def test_first_x_forwarded_for_entry(self):
        request = _make_request(
            headers={"X-Forwarded-For": "203.0.113.50, 70.41.3.18, 150.172.238.178"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "203.0.113.50"

    def test_direct_connection(self):
        request = _make_request(client_host="192.168.1.50")
        assert get_client_ip(request) == "192.168.1.50"

    def test_unknown_fallback(self):
        assert get_client_ip(_make_request()) == "unknown"

    def test_strips_whitespace(self):
        request = _make_request(headers={"X-Real-IP": "  192.168.1.100  "})
        assert get_client_ip(request) == "192.168.1.100"


class TestGetRequestContext:
    """Tests for the get_request_context function."""

    def test_none_outside_request(self):
        assert get_request_context() is None

    def test_returns_set_context(self):
        ctx = RequestContext(
            request_id="test-id",
            ip_address="1.2.3.4",
            user_agent="Test",
            path="/test",
            method="GET",
        )

        token = _request_context.set(ctx)
        try:
            assert get_request_context() is ctx
        finally:
            _request_context.reset(token)


@pytest.mark.asyncio
class TestRequestContextMiddleware:
    """Tests for the RequestContextMiddleware class."""

    async def test_generates_request_id(self):
        middleware = RequestContextMiddleware(app=MagicMock())

        response = await middleware.dispatch(_make_request(), _ok)

        # UUID4 format (36 chars with hyphens)
        assert len(response.headers["X-Request-ID"]) == 36

    async def test_honours_incoming_request_id(self):
        middleware = RequestContextMiddleware(app=MagicMock())

        response = await middleware.dispatch(
            _make_request(headers={"X-Request-ID": "portal-req-42"}), _ok
        )

        assert response.headers["X-Request-ID"] == "portal-req-42"

    async def test_oversized_request_id_is_replaced(self):
        middleware = RequestContextMiddleware(app=MagicMock())
        oversized = "x" * (MAX_HEADER_VALUE_LENGTH + 1)

        response = await middleware.dispatch(
            _make_request(headers={"X-Request-ID": oversized}), _ok
        )

        assert response.headers["X-Request-ID"] != oversized

    async def test_sets_context_in_request_state(self):
        captured = {}

        async def call_next(req):
            captured["state"] = req.state.context
            captured["var"] = get_request_context()
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(
            _make_request(
                headers={
                    "X-Real-IP": "192.168.1.100",
                    "User-Agent": "ProjectUI/2.1",
                    "X-Actor-Id": " user-17 ",
                },
                method="POST",
                path="/api/quotes/3/send",
            ),
            call_next,
        )

        context = captured["state"]
        assert captured["var"] is context
        assert context.ip_address == "192.168.1.100"
        assert context.user_agent == "ProjectUI/2.1"
        assert context.actor_id == "user-17"
        assert context.path == "/api/quotes/3/send"
        assert context.method == "POST"

    async def test_missing_actor_is_none(self):
        captured = {}

        async def call_next(req):
            captured["actor"] = req.state.context.actor_id
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(_make_request(headers={"X-Actor-Id": "   "}), call_next)

        assert captured["actor"] is None

    async def test_clears_context_on_error(self):
        async def call_next(req):
            raise RuntimeError("handler failed")

        middleware = RequestContextMiddleware(app=MagicMock())
        with pytest.raises(RuntimeError):
            await middleware.dispatch(_make_request(), call_next)

        assert get_request_context() is None


class TestRequestIdLogFilter:
    """Tests for RequestIdLogFilter."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("quote_engine", logging.INFO, __file__, 1, "msg", None, None)

    def test_dash_outside_request(self):
        record = self._record()

        assert RequestIdLogFilter().filter(record) is True
        assert record.request_id == "-"

    def test_copies_request_id(self):
        ctx = RequestContext(
            request_id="req-9", ip_address="1.2.3.4", user_agent=None, path="/", method="GET"
        )
        token = _request_context.set(ctx)
        try:
            record = self._record()
            RequestIdLogFilter().filter(record)
        finally:
            _request_context.reset(token)

        assert record.request_id == "req-9"
