"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Each accepted client
socket is wrapped in a Connection and handed to a callback; what happens
next (threads, HTTP) is the caller's business.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP/IPv4 socket
    2. setsockopt  SO_REUSEADDR: rebinding right after a restart works
    3. bind()      Reserve host:port (default 0.0.0.0:4221)
    4. listen()    OS starts queueing connections (backlog 5)
    5. accept()    Loop: one new socket per client
    6. close()     On shutdown

A failure in steps 1-4 raises StartupError: the server never started and
the process should exit with status 1. A failure in step 5 affects one
connection attempt only: it is logged and the loop keeps going.

=============================================================================
SO_REUSEADDR
=============================================================================

After the server stops, the port sits in TIME_WAIT for up to a minute.
Without SO_REUSEADDR a quick restart fails with "Address already in use".

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (kill, docker stop) stop the accept loop
instead of killing the process mid-response. Python only lets the main
thread install signal handlers, so when the server runs in another thread
(as in the tests) this step is skipped and shutdown() is called directly.

=============================================================================
"""

import socket
import signal
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class StartupError(Exception):
    """The listening socket could not be created, configured, bound or opened."""

    def __init__(self, message: str, cause: Optional[OSError] = None):
        super().__init__(message)
        self.cause = cause


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │    start(callback)                                                   │
    │        ├──► _create_socket()   socket() + SO_REUSEADDR              │
    │        ├──► bind() / listen()  → StartupError on failure           │
    │        ├──► _setup_signals()   main thread only                     │
    │        └──► _accept_loop()     blocks until shutdown()              │
    │                 └──► accept() → Connection → callback(conn)         │
    │                                                                      │
    │    shutdown()                                                        │
    │        └──► _running = False (loop exits within poll_interval)      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig, poll_interval: float = 0.5):
        """
        Args:
            config: Server configuration (host, port, backlog, ...).
            poll_interval: accept() timeout, i.e. how often the loop
                           checks whether it should stop.
        """
        self.config = config
        self.poll_interval = poll_interval

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        # Set once the socket is listening; tests wait on it.
        self._ready_event = threading.Event()
        # Set once the accept loop has exited.
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is running."""
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound.

        Differs from config.port when port 0 asked the OS for a free port.
        """
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """Create the TCP socket with SO_REUSEADDR set."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError:
            sock.close()
            raise

        # accept() wakes up periodically so shutdown() is noticed
        sock.settimeout(self.poll_interval)
        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that call shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def listen(self):
        """
        Create, bind and open the listening socket.

        Raises:
            StartupError: Any of socket/setsockopt/bind/listen failed.
        """
        host, port = self.config.host, self.config.port

        try:
            sock = self._create_socket()
        except OSError as e:
            raise StartupError(f"Failed to create server socket: {e}", e) from e

        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise StartupError(f"Failed to bind to {host}:{port}: {e}", e) from e

        try:
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise StartupError(f"listen() failed on {host}:{port}: {e}", e) from e

        self._socket = sock
        self._bound_address = sock.getsockname()[:2]

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Open the socket and run the accept loop.

        This method BLOCKS until shutdown() is called.

        Args:
            connection_handler: Called with each new Connection. Must not
                                block for long (the HTTP server spawns a
                                thread and returns).

        Raises:
            StartupError: The socket could not be set up.
        """
        if self._socket is None:
            self.listen()

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self._ready_event.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        A failed accept() is logged and the loop continues; it never
        stops the server.
        """
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Poll: re-check self._running
            except OSError as e:
                if not self._running:
                    break  # Socket closed by shutdown
                logger.error(f"Accept error: {e}")
                # Back off briefly so a persistent error (e.g. EMFILE) does not spin
                time.sleep(0.01)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            # The listening socket's timeout is inherited on some platforms
            client_socket.setblocking(True)

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.socket_timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception as e:
                logger.exception(f"[{conn.id}] Failed to dispatch connection: {e}")
                conn.close()

    def shutdown(self):
        """
        Ask the accept loop to stop.

        Safe to call from a signal handler or another thread, and more
        than once.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        """Restore signals and close the listening socket."""
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
