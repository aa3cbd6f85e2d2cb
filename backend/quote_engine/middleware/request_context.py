"""
Request context middleware.

WHAT: Middleware that captures request context (request ID, client IP, user
agent, acting user) and makes it available throughout the request lifecycle.

WHY: Quote changes come from the project UI, the catalog and chat assistants.
Correlating a state transition in the logs with the request that caused it
needs a request ID on every log record, and created_by needs to know who is
acting without threading it through every call.

HOW: Uses Starlette's request state plus a ContextVar for async-safe access
from services. RequestIdLogFilter copies the request ID onto log records.
"""

import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
ACTOR_HEADER = "X-Actor-Id"
MAX_HEADER_VALUE_LENGTH = 128


@dataclass
class RequestContext:
    """
    Container for request-scoped context data.

    Fields:
    - request_id: Correlation ID (incoming X-Request-ID or a new UUID4)
    - ip_address: Client's real IP (considering proxies)
    - user_agent: Client's browser/application identifier
    - path: Request path
    - method: HTTP method
    - actor_id: Acting user from X-Actor-Id, if supplied
    """

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str
    actor_id: Optional[str] = None


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise (e.g. scheduler jobs)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP, preferring proxy headers.

    Order: X-Real-IP, first entry of X-Forwarded-For, then the socket peer.
    These headers can be spoofed unless a trusted proxy overwrites them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def _header_value(request: Request, name: str) -> Optional[str]:
    value = request.headers.get(name)
    if value is None:
        return None
    value = value.strip()
    if not value or len(value) > MAX_HEADER_VALUE_LENGTH:
        return None
    return value


class RequestIdLogFilter(logging.Filter):
    """
    Adds ``request_id`` to every log record.

    Records emitted outside a request (startup, scheduler jobs) get "-".

    Example:
        handler.addFilter(RequestIdLogFilter())
        formatter = logging.Formatter("%(asctime)s [%(request_id)s] %(message)s")
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = _request_context.get()
        record.request_id = context.request_id if context else "-"
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    Stores the context in both request.state (for handlers) and a ContextVar
    (for services and log filters) and echoes the request ID in the
    X-Request-ID response header.

    Example:
        @router.get("/api/example")
        async def example(request: Request):
            ctx = request.state.context
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _header_value(request, REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
            actor_id=_header_value(request, ACTOR_HEADER),
        )
        request.state.context = context
        token = _request_context.set(context)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_context.reset(token)
