"""
Root handler: "GET /" answers 200 with no headers and no body.

    HTTP/1.1 200 OK\r\n
    \r\n

Useful as a liveness check: if this answers, the accept loop is running.
"""

from ..config import ServerConfig
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok
from ..http.router import RouteHandler


class RootHandler(RouteHandler):
    """Ignores the request; always 200 with an empty body."""

    def handle(self, request: HTTPRequest, config: ServerConfig) -> HTTPResponse:
        return ok()
