"""
=============================================================================
HTTP RESPONSE BUILDER AND WRITER
=============================================================================

Builds HTTP/1.1 responses and serializes them to wire format.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                      ◄── status line        │
    │    Content-Type: text/plain\r\n             ◄── headers, in the    │
    │    Content-Length: 3\r\n                        order they were set│
    │    \r\n                                     ◄── end of headers     │
    │    abc                                      ◄── body, verbatim     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE WRITER DOES NOT INVENT HEADERS
=============================================================================

to_bytes() writes exactly the headers the handler set. It does NOT add
Content-Length, Date or Server. A bare "GET /" therefore answers with

    HTTP/1.1 200 OK\r\n\r\n

and nothing else. Getting Content-Length right is the handler's job;
ResponseBuilder.text() and .binary() set it from the body they are given,
so handlers that use them cannot get it wrong.

=============================================================================
BUILDER PATTERN
=============================================================================

    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .text("abc")
        .build())

Each method returns `self`; build() creates the HTTPResponse.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Union

from .request import HEADER_ENCODING
from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Constructed by a handler, serialized exactly once by to_bytes(), then
    discarded.

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 404 Not Found"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

            HTTP/1.1 200 OK\\r\\n
            <name>: <value>\\r\\n      (one per header, insertion order)
            \\r\\n
            <body bytes>
        """
        lines = [self.status_line]

        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")

        # Empty line separates headers from body
        lines.append("")

        head = "\r\n".join(lines).encode(HEADER_ENCODING) + b"\r\n"
        return head + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        ResponseBuilder().status(HTTPStatus.CREATED).build()

        ResponseBuilder().text("hello").build()
            → 200, Content-Type: text/plain, Content-Length: 5, b"hello"

        ResponseBuilder().binary(data).build()
            → 200, Content-Type: application/octet-stream,
              Content-Length: len(data), data
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        """Add multiple headers at once."""
        self._headers.update(headers)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set the raw body. No headers are touched.

        Strings are encoded with the header codec so that text taken from
        the request line or a header goes back out byte-for-byte.
        """
        if isinstance(body, str):
            self._body = body.encode(HEADER_ENCODING)
        else:
            self._body = body
        return self

    def text(self, text: Union[str, bytes]) -> "ResponseBuilder":
        """
        Plain-text body with matching Content-Type and Content-Length.

        Content-Length counts BYTES, not characters.
        """
        self.body(text)
        self._headers["Content-Type"] = "text/plain"
        self._headers["Content-Length"] = str(len(self._body))
        return self

    def binary(self, content: bytes) -> "ResponseBuilder":
        """File body as application/octet-stream with Content-Length."""
        self._body = content
        self._headers["Content-Type"] = "application/octet-stream"
        self._headers["Content-Length"] = str(len(content))
        return self

    def build(self) -> HTTPResponse:
        """Build and return the HTTPResponse."""
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the empty-body responses handlers return:
#
#     return not_found()
#     return created()
#
# =============================================================================

def ok(text: Union[str, bytes, None] = None) -> HTTPResponse:
    """
    200 OK.

    With no argument the response has no headers and no body. With text,
    the body is sent as text/plain.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if text is not None:
        builder.text(text)
    return builder.build()


def created() -> HTTPResponse:
    """201 Created, empty body."""
    return ResponseBuilder().status(HTTPStatus.CREATED).build()


def forbidden() -> HTTPResponse:
    """403 Forbidden, empty body."""
    return ResponseBuilder().status(HTTPStatus.FORBIDDEN).build()


def not_found() -> HTTPResponse:
    """404 Not Found, empty body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()


def method_not_allowed(allowed_methods: Iterable[str]) -> HTTPResponse:
    """
    405 Method Not Allowed, empty body.

    RFC 7231 asks for an Allow header listing the methods the resource
    does support.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def internal_error() -> HTTPResponse:
    """500 Internal Server Error, empty body."""
    return ResponseBuilder().status(HTTPStatus.INTERNAL_SERVER_ERROR).build()


def error_response(status: HTTPStatus) -> HTTPResponse:
    """
    Empty-body response for an arbitrary status.

    Used at the connection boundary for errors that happen before a
    handler runs (parse errors, overload).
    """
    return ResponseBuilder().status(status).build()
