"""
=============================================================================
FILE TRANSFER HANDLER
=============================================================================

Reads and writes files under the configured base directory:

    GET  /files/{name}   → 200 + file bytes, or 404
    POST /files/{name}   → 201 after writing the body, or 500
    other methods        → 405

=============================================================================
FLOW
=============================================================================

    Request: POST /files/report.txt   (directory = "/tmp/data/")

    1. Method check          not GET/POST?         → 405
    2. Directory configured? no?                   → 404 (GET) / 500 (POST)
    3. Resolve path          "/tmp/data/" + "report.txt"
    4. Containment check     outside /tmp/data/?   → 403
    5. Read or write         I/O error?            → 404 (GET) / 500 (POST)

=============================================================================
SECURITY: PATH CONTAINMENT
=============================================================================

The file name comes straight from the URL, so "/files/../../etc/passwd"
would name a file outside the base directory. We resolve the full path
(following ".." and symlinks) and refuse anything that does not land
inside the base directory:

    directory = "/tmp/data/"

    /files/report.txt          → /tmp/data/report.txt       ✓
    /files/sub/../report.txt   → /tmp/data/report.txt       ✓
    /files/../secret           → /tmp/secret                ✗ 403
    /files/../../etc/passwd    → /etc/passwd                ✗ 403

=============================================================================
CONCURRENCY
=============================================================================

File access is not locked. Two connections writing the same name race at
the filesystem level; the last complete write wins.

=============================================================================
"""

import logging
from pathlib import Path

from ..config import ServerConfig
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder,
    created, forbidden, internal_error, method_not_allowed, not_found,
)
from ..http.router import RouteHandler


logger = logging.getLogger(__name__)


class PathOutsideDirectory(Exception):
    """The requested file resolves to a location outside the base directory."""

    def __init__(self, filename: str, resolved: Path):
        super().__init__(f"{filename!r} resolves outside the base directory: {resolved}")
        self.filename = filename
        self.resolved = resolved


class FileTransferHandler(RouteHandler):
    """
    Serve GET and accept POST for files under ServerConfig.directory.

    Args:
        filename: The part of the path after "/files/", used as-is
                  (no percent-decoding).
    """

    ALLOWED_METHODS = ("GET", "POST")

    def __init__(self, filename: str):
        self.filename = filename

    def __repr__(self) -> str:
        return f"{self.name}({self.filename!r})"

    def handle(self, request: HTTPRequest, config: ServerConfig) -> HTTPResponse:
        """Dispatch on method, resolve the path, then read or write."""
        if request.method not in self.ALLOWED_METHODS:
            return method_not_allowed(self.ALLOWED_METHODS)

        if not config.has_directory:
            logger.debug(f"No directory configured; refusing {request.method} {self.filename!r}")
            return self._unavailable(request)

        try:
            path = self.resolve(config.directory)
        except PathOutsideDirectory as e:
            logger.warning(f"Path traversal attempt from {request.client_address[0]}: {e}")
            return forbidden()
        except ValueError as e:
            # e.g. an embedded NUL byte in the name
            logger.debug(f"Unusable file name {self.filename!r}: {e}")
            return self._unavailable(request)

        if request.method == "GET":
            return self._read(path)
        return self._write(path, request.body)

    def resolve(self, directory: str) -> Path:
        """
        Build and check the full path for this request.

        The path is the plain concatenation directory + filename, then
        resolved. It must be the base directory itself or inside it.

        Raises:
            PathOutsideDirectory: The resolved path escapes directory.
        """
        base = Path(directory).resolve()
        target = Path(directory + self.filename).resolve()

        if target != base and base not in target.parents:
            raise PathOutsideDirectory(self.filename, target)
        return target

    def _read(self, path: Path) -> HTTPResponse:
        """GET: the whole file as application/octet-stream, or 404."""
        try:
            content = path.read_bytes()
        except (OSError, ValueError) as e:
            # Missing, unreadable, or a directory: all look the same to the client.
            logger.debug(f"Cannot read {path}: {e}")
            return not_found()

        return ResponseBuilder().binary(content).build()

    def _write(self, path: Path, body: bytes) -> HTTPResponse:
        """POST: create or overwrite the file with the request body."""
        try:
            path.write_bytes(body)
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot write {path}: {e}")
            return internal_error()

        logger.info(f"Wrote {len(body)} bytes to {path}")
        return created()

    @staticmethod
    def _unavailable(request: HTTPRequest) -> HTTPResponse:
        """What a GET or POST gets when no file can be addressed."""
        if request.method == "GET":
            return not_found()
        return internal_error()
