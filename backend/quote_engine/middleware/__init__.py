"""
Middleware package.

WHY: Middleware provides cross-cutting concerns (request correlation, actor
capture) that apply to all requests.
"""

from quote_engine.middleware.request_context import (
    RequestContextMiddleware,
    RequestContext,
    RequestIdLogFilter,
    get_request_context,
    get_client_ip,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestContext",
    "RequestIdLogFilter",
    "get_request_context",
    "get_client_ip",
]
