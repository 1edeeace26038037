"""
=============================================================================
MINIHTTPD - A Small Threaded HTTP/1.1 Server on Raw Sockets
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET  /                 → 200, empty body                           │
    │  GET  /echo/{text}      → 200, text/plain {text}                    │
    │  GET  /user-agent       → 200, text/plain User-Agent header         │
    │  GET  /files/{name}     → 200 application/octet-stream, or 404     │
    │  POST /files/{name}     → 201, body written to {directory}{name}    │
    │  anything else          → 404                                       │
    └─────────────────────────────────────────────────────────────────────┘

One thread per connection, one request per connection.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttpd/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI entry point (python -m minihttpd)
    ├── server.py            # HTTPServer: accept → thread → handle
    ├── config.py            # ServerConfig frozen dataclass
    ├── core/
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── connection.py    # Read one request, send one response
    │   └── supervisor.py    # Thread-per-connection tracking
    ├── http/
    │   ├── request.py       # Bytes → HTTPRequest
    │   ├── response.py      # HTTPResponse → bytes
    │   ├── router.py        # Path → RouteHandler
    │   └── status_codes.py  # HTTPStatus enum
    ├── middleware/
    │   ├── base.py          # Middleware, MiddlewarePipeline
    │   └── logging.py       # Access log
    └── handlers/
        ├── root.py          # /
        ├── echo.py          # /echo/{text}, /user-agent
        └── files.py         # /files/{name}

=============================================================================
QUICK START
=============================================================================

    from minihttpd import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=4221, directory="/tmp/files"))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_app
from .config import ServerConfig
from .core import StartupError

__all__ = ["HTTPServer", "ServerConfig", "StartupError", "create_app", "__version__"]
