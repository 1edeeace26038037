"""
=============================================================================
HTTP PROTOCOL PACKAGE
=============================================================================

Everything that knows about HTTP/1.1 framing, independent of sockets:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes → HTTPRequest (RequestParser)            │
    │ response.py      HTTPResponse → raw bytes (to_bytes)                │
    │ router.py        path → RouteHandler (first match wins)            │
    │ status_codes.py  HTTPStatus enum with reason phrases               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
HTTP MESSAGE FORMAT (RFC 7230)
=============================================================================

    REQUEST:                          RESPONSE:
    ─────────                         ──────────
    GET /path HTTP/1.1\r\n            HTTP/1.1 200 OK\r\n
    Header: Value\r\n                 Header: Value\r\n
    \r\n                              \r\n
    [body]                            [body]

=============================================================================
"""

from .request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    MalformedRequestLine,
    RequestTooLarge,
)
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                  # 200 OK
    created,             # 201 Created
    forbidden,           # 403 Forbidden
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    internal_error,      # 500 Internal Server Error
    error_response,
)
from .router import Router, Route, RouteKind, RouteMatch, RouteHandler, NotFoundHandler
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "MalformedRequestLine",
    "RequestTooLarge",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "error_response",

    # Routing
    "Router",
    "Route",
    "RouteKind",
    "RouteMatch",
    "RouteHandler",
    "NotFoundHandler",

    # Status codes
    "HTTPStatus",
]
