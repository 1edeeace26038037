"""
=============================================================================
MINIHTTPD CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:4221, no file directory
    python -m minihttpd

    # Enable /files/{name}
    python -m minihttpd --directory /tmp/files

    # Installed console script, JSON access log, capped concurrency
    minihttpd -d ./data --log-format json --max-connections 100

Settings are read in this order, later wins:

    ServerConfig defaults  →  MINIHTTPD_* environment  →  command line

=============================================================================
EXIT STATUS
=============================================================================

    0   Server stopped by SIGINT/SIGTERM
    1   Startup failed (bad option, socket/bind/listen error)

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .core import StartupError
from .server import create_app


logger = logging.getLogger("minihttpd")


def build_parser(defaults: Optional[ServerConfig] = None) -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Args:
        defaults: Values shown and used when an option is omitted
                  (normally ServerConfig.from_env()).
    """
    defaults = defaults or ServerConfig()

    parser = argparse.ArgumentParser(
        prog="minihttpd",
        description="Minimal threaded HTTP/1.1 server with echo and file routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Routes:
  GET  /                  200, empty body
  GET  /echo/{text}       200, body is {text}
  GET  /user-agent        200, body is the User-Agent header
  GET  /files/{name}      200 with file contents, or 404
  POST /files/{name}      201, request body written to the file

Examples:
  python -m minihttpd                          # 0.0.0.0:4221
  python -m minihttpd --directory /tmp/files   # Enable /files/
  python -m minihttpd -p 8080 --log-level DEBUG
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=defaults.directory,
        help="Base directory for /files/{name} (default: none, file routes disabled)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"IPv4 address to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.socket_timeout,
        help="Client socket timeout in seconds (default: none, wait forever)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        default=defaults.max_connections,
        help="Connections handled at once; extra ones get 503 (default: unlimited)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=defaults.log_format,
        help=f"Access log format (default: {defaults.log_format})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttpd {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed arguments into a ServerConfig."""
    return ServerConfig(
        host=args.host,
        port=args.port,
        directory=args.directory or "",
        socket_timeout=args.timeout,
        max_connections=args.max_connections,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[List[str]] = None):
    """Parse arguments, build the server, run it until stopped."""
    try:
        env_defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid MINIHTTPD_* environment: {e}", file=sys.stderr)
        sys.exit(1)

    args = build_parser(env_defaults).parse_args(argv)

    try:
        server = create_app(config_from_args(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Blocks until SIGINT/SIGTERM
    try:
        server.run()
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
