"""
=============================================================================
ROUTE HANDLERS
=============================================================================

The handlers behind minihttpd's fixed route table:

    ┌────────────────────┬───────────────┬──────────────────────────────┐
    │ Route              │ Kind          │ Handler                      │
    ├────────────────────┼───────────────┼──────────────────────────────┤
    │ /                  │ exact         │ RootHandler                  │
    │ /echo/{text}       │ prefix        │ EchoHandler(text)            │
    │ /user-agent        │ exact         │ UserAgentHandler             │
    │ /files/{name}      │ prefix        │ FileTransferHandler(name)    │
    │ anything else      │ fallback      │ NotFoundHandler              │
    └────────────────────┴───────────────┴──────────────────────────────┘

All handlers share one contract:

    handle(request: HTTPRequest, config: ServerConfig) -> HTTPResponse

=============================================================================
USAGE
=============================================================================

    from minihttpd.handlers import build_router

    router = build_router()
    handler = router.route("/echo/abc")          # EchoHandler('abc')
    response = handler.handle(request, config)

=============================================================================
"""

from ..http.router import NotFoundHandler, RouteHandler, Router
from .echo import EchoHandler, UserAgentHandler
from .files import FileTransferHandler, PathOutsideDirectory
from .root import RootHandler


def build_router() -> Router:
    """
    Build the default route table.

    Order is significant: routes are tried top-to-bottom and the first
    match wins.
    """
    router = Router(fallback=NotFoundHandler)
    router.add_exact("/", RootHandler, name="root")
    router.add_prefix("/echo/", EchoHandler, name="echo")
    router.add_exact("/user-agent", UserAgentHandler, name="user_agent")
    router.add_prefix("/files/", FileTransferHandler, name="files")
    return router


__all__ = [
    "RouteHandler",
    "NotFoundHandler",
    "RootHandler",
    "EchoHandler",
    "UserAgentHandler",
    "FileTransferHandler",
    "PathOutsideDirectory",
    "build_router",
]
