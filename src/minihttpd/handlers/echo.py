"""
=============================================================================
ECHO HANDLERS
=============================================================================

Two handlers that reflect part of the request back as text/plain:

    GET /echo/{text}    → body = {text}, exactly as it appeared in the path
    GET /user-agent     → body = the User-Agent header value

    HTTP/1.1 200 OK\r\n
    Content-Type: text/plain\r\n
    Content-Length: 3\r\n
    \r\n
    abc

No decoding happens in either direction: "/echo/a%20b" answers "a%20b",
and Content-Length counts the bytes the client sent.

=============================================================================
"""

from ..config import ServerConfig
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok
from ..http.router import RouteHandler


class EchoHandler(RouteHandler):
    """Answer with the remainder of the path after "/echo/"."""

    def __init__(self, text: str):
        self.text = text

    def __repr__(self) -> str:
        return f"{self.name}({self.text!r})"

    def handle(self, request: HTTPRequest, config: ServerConfig) -> HTTPResponse:
        return ok(self.text)


class UserAgentHandler(RouteHandler):
    """
    Answer with the client's User-Agent header.

    The lookup is case-insensitive ("user-agent", "USER-AGENT" all work).
    A request without the header gets an empty body with Content-Length: 0.
    """

    def handle(self, request: HTTPRequest, config: ServerConfig) -> HTTPResponse:
        return ok(request.get_header("User-Agent"))
