"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One immutable ServerConfig is built at startup (from the CLI or the
environment) and handed to every connection. Handlers read it; nothing
writes to it once the accept loop is running.

=============================================================================
WHY FROZEN?
=============================================================================

Every connection thread reads the same ServerConfig at the same time. A
frozen dataclass cannot be modified after construction, so concurrent
reads need no lock. To change a value, build a new config:

    config = ServerConfig(directory="/tmp/files")
    config = dataclasses.replace(config, port=8080)

=============================================================================
BASE DIRECTORY NORMALIZATION
=============================================================================

The /files/{name} route builds its path as directory + name. For that
concatenation to work, `directory` always ends with a path separator
(or is empty, meaning "no directory configured"):

    ServerConfig(directory="/tmp/data")   → directory == "/tmp/data/"
    ServerConfig(directory="/tmp/data/")  → directory == "/tmp/data/"
    ServerConfig()                        → directory == ""

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, socket_timeout

    HTTP SETTINGS
    - max_request_size

    CONCURRENCY
    - max_connections

    FILES
    - directory

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IPv4 address to bind to.
    - "0.0.0.0" - All network interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = 4221
    """
    The port number to listen on. 0 lets the OS pick a free port.
    """

    backlog: int = 5
    """
    Maximum number of connections the OS queues before accept().
    """

    buffer_size: int = 1024
    """
    Bytes requested per recv() call. Requests larger than this are read
    in several calls, not truncated.
    """

    socket_timeout: Optional[float] = None
    """
    Timeout in seconds for recv/send on client sockets.
    None = wait forever (a silent client holds its thread until it
    disconnects).
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Largest request (headers + body) accepted, in bytes.
    Larger requests are answered with 413 Payload Too Large.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    max_connections: Optional[int] = None
    """
    Maximum number of connections handled at once.
    None = unbounded (one thread per connection, no cap).
    When the cap is reached, new connections get 503 Service Unavailable.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = ""
    """
    Base directory for /files/{name}. Always ends with a path separator
    or is empty. Empty means file routes answer 404 (GET) and 500 (POST).
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR).
    """

    log_format: str = "text"
    """
    Access log format: 'text' (Apache style) or 'json'.
    """

    def __post_init__(self):
        """Normalize the base directory to end with a separator."""
        directory = self.directory or ""
        if directory and not directory.endswith(os.sep):
            directory += os.sep
        # Frozen dataclass: bypass __setattr__ for the one normalization.
        object.__setattr__(self, "directory", directory)

    @property
    def has_directory(self) -> bool:
        """True when a base directory for file routes is configured."""
        return bool(self.directory)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        MINIHTTPD_HOST       Server host (default: 0.0.0.0)
        MINIHTTPD_PORT       Server port (default: 4221)
        MINIHTTPD_DIRECTORY  Base directory for /files (default: none)
        MINIHTTPD_LOG_LEVEL  Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("MINIHTTPD_HOST", "0.0.0.0"),
            port=int(os.getenv("MINIHTTPD_PORT", "4221")),
            directory=os.getenv("MINIHTTPD_DIRECTORY", ""),
            log_level=os.getenv("MINIHTTPD_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails immediately, before
        the socket is opened.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.socket_timeout is not None and self.socket_timeout <= 0:
            raise ValueError("socket_timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
