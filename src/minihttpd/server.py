"""
=============================================================================
HTTP SERVER - MAIN ORCHESTRATOR
=============================================================================

Ties the pieces together: the socket server accepts, the supervisor gives
each connection a thread, and inside that thread one request is read,
parsed, routed, handled and answered.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  accept loop (main thread)                                           │
    │     │                                                                │
    │     ├── SocketServer.accept() → Connection                           │
    │     └── ConnectionSupervisor.spawn(_process_connection, conn)        │
    │             │          (at the connection cap: 503, close)          │
    │             ▼                                                        │
    │  connection thread                                                   │
    │     1. conn.read_request()     bytes until \\r\\n\\r\\n + body         │
    │     2. RequestParser.parse()   → HTTPRequest     (400 / 413)         │
    │     3. Router.route(path)      → RouteHandler    (404 fallback)      │
    │     4. middleware → handler.handle(request, config)   (500 if it    │
    │                                                        raises)      │
    │     5. conn.send_response(response.to_bytes())                      │
    │     6. conn.close()            always, via `with conn:`             │
    └─────────────────────────────────────────────────────────────────────┘

One request per connection. There is no keep-alive: the socket is closed
after the response whatever the request's Connection header says.

=============================================================================
"""

import dataclasses
import logging
import os
import threading
from typing import Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ConnectionSupervisor
from .handlers import build_router
from .http import (
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    HTTPParseError,
    RequestParser,
    Router,
    error_response,
    internal_error,
)
from .middleware import Middleware, MiddlewarePipeline, LoggingMiddleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Thread-per-connection HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(directory="/tmp/files"))
        server.use(LoggingMiddleware())
        server.run()            # Blocks until SIGINT/SIGTERM or shutdown()

    From another thread (tests):

        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_ready(5.0)
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    COMPONENTS
    =========================================================================

    - ServerConfig:          Frozen settings, shared by every thread
    - SocketServer:          Listening socket + accept loop
    - ConnectionSupervisor:  One tracked thread per connection
    - RequestParser:         Bytes → HTTPRequest
    - Router:                Path → RouteHandler
    - MiddlewarePipeline:    Wraps every handler call

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration. Defaults to ServerConfig().
            router: Route table. Defaults to build_router().

        Raises:
            ValueError: The configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail fast, before any socket exists

        self._socket_server = SocketServer(self.config)
        self._supervisor = ConnectionSupervisor(max_connections=self.config.max_connections)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = router if router is not None else build_router()
        self._middleware = MiddlewarePipeline()

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add middleware. Executed in the order added.

        Returns:
            Self for method chaining.
        """
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        """The route table."""
        return self._router

    @property
    def supervisor(self) -> ConnectionSupervisor:
        """The connection thread supervisor (for stats)."""
        return self._supervisor

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Args:
            host: Override config host.
            port: Override config port.

        Raises:
            StartupError: The listening socket could not be set up.
        """
        overrides = {}
        if host is not None:
            overrides["host"] = host
        if port is not None:
            overrides["port"] = port
        if overrides:
            self.config = dataclasses.replace(self.config, **overrides)
            self.config.validate()
            self._socket_server = SocketServer(self.config)

        self._setup_logging()
        self._check_directory()

        for line in self._router.describe():
            logger.debug(f"Route: {line}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """
        Stop accepting connections. run() returns once the accept loop
        has exited and in-flight connections are done.
        """
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("minihttpd").setLevel(level)

    def _check_directory(self):
        """Warn early when file routes cannot work."""
        if not self.config.has_directory:
            logger.info("No --directory given: /files/ routes are disabled")
        elif not os.path.isdir(self.config.directory):
            logger.warning(
                f"Directory {self.config.directory!r} does not exist: "
                f"GET /files/ will return 404 and POST /files/ 500"
            )
        else:
            logger.info(f"Serving files from {self.config.directory}")

    def _shutdown(self):
        """Wait for in-flight connections, then report."""
        logger.info("Shutting down server...")
        self._supervisor.shutdown(wait=True, timeout=30.0)
        logger.info(f"Server stopped ({self._supervisor.stats})")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a new connection to its own thread.

        Called by SocketServer in the accept loop, so it must not block.
        """
        spawned = self._supervisor.spawn(self._process_connection, conn, name=conn.id)

        if not spawned:
            logger.warning(f"[{conn.id}] Connection limit reached, rejecting {conn.client_ip}")
            # Closing drains the client, so never do it on the accept thread
            threading.Thread(
                target=self._reject_connection,
                args=(conn,),
                name=f"reject-{conn.id}",
                daemon=True,
            ).start()

    def _reject_connection(self, conn: Connection):
        """Answer 503 and close. Not counted against max_connections."""
        with conn:
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on a connection (runs in its own thread).
        """
        with conn:  # Closed on every path, including exceptions
            # ─────────────────────────────────────────────────────────────
            # READ + PARSE
            # ─────────────────────────────────────────────────────────────
            try:
                raw_request = conn.read_request()
                if raw_request is None:
                    logger.debug(f"[{conn.id}] Client closed without sending a request")
                    return

                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                self._send_error(conn, HTTPStatus(e.status_code))
                return
            except TimeoutError:
                logger.warning(f"[{conn.id}] Timed out reading request from {conn.client_ip}")
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                return

            conn.state = ConnectionState.PARSED

            # ─────────────────────────────────────────────────────────────
            # ROUTE + HANDLE
            # ─────────────────────────────────────────────────────────────
            handler = self._router.route(request.path)
            conn.state = ConnectionState.ROUTED
            logger.debug(f"[{conn.id}] {request.method} {request.path} → {handler!r}")

            def dispatch(req: HTTPRequest) -> HTTPResponse:
                return handler.handle(req, self.config)

            try:
                response = self._middleware.wrap(dispatch)(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            conn.state = ConnectionState.HANDLED

            # ─────────────────────────────────────────────────────────────
            # WRITE
            # ─────────────────────────────────────────────────────────────
            conn.send_response(response.to_bytes())

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """
        Send an empty-body error response.

        Used for errors before a handler runs (parse errors, timeouts,
        overload).
        """
        conn.send_response(error_response(status).to_bytes())


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a server with the default routes and the access log installed.

        app = create_app(ServerConfig(port=8080, directory="/srv/files"))
        app.run()
    """
    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=server.config.log_format))
    return server
