"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttpd import HTTPServer, ServerConfig
from minihttpd.http import HTTPRequest


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/hello HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: pytest/8.0\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a binary body."""
    body = b"\x00\x01binary\xffdata"
    return (
        b"POST /files/upload.bin HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def files_dir(tmp_path: Path) -> Path:
    """Empty directory served under /files/."""
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def config(files_dir: Path) -> ServerConfig:
    """Test server configuration with a file directory."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        directory=str(files_dir),
        socket_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[dict] = None,
    body: bytes = b"",
) -> HTTPRequest:
    """Build an HTTPRequest directly, bypassing the parser."""
    headers = {name.lower(): value for name, value in (headers or {}).items()}
    if body:
        headers.setdefault("content-length", str(len(body)))
    return HTTPRequest(
        method=method,
        path=path,
        headers=headers,
        body=body,
        content_length=len(body),
        client_address=("127.0.0.1", 50000),
    )


@pytest.fixture
def build_request():
    """Factory fixture for HTTPRequest objects."""
    return make_request


class RawResponse:
    """A response read back off the wire, split into its parts."""

    def __init__(self, data: bytes):
        self.raw = data
        head, _, self.body = data.partition(b"\r\n\r\n")
        lines = head.decode("iso-8859-1").split("\r\n")
        self.status_line = lines[0]
        self.status = int(lines[0].split(" ")[1])
        self.header_lines = lines[1:]
        self.headers = {}
        for line in self.header_lines:
            name, _, value = line.partition(": ")
            self.headers[name] = value

    def __repr__(self) -> str:
        return f"RawResponse({self.raw!r})"


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def send(self, raw: bytes, timeout: float = 5.0) -> RawResponse:
        """Send raw request bytes and read until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as sock:
            sock.sendall(raw)
            sock.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return RawResponse(b"".join(chunks))

    def request(
        self,
        method: str,
        path: str,
        headers: Optional[dict] = None,
        body: bytes = b"",
    ) -> RawResponse:
        """Send a well-formed request built from parts."""
        lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if body:
            lines.append(f"Content-Length: {len(body)}")
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1")
        return self.send(head + body)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running server on a free port, serving files from files_dir."""
    test_srv = TestServer(HTTPServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture
def serve() -> Generator:
    """
    Factory fixture: start a server for a custom config (and router), or
    an already built HTTPServer. Stopped at teardown.

        server = serve(ServerConfig(port=0, max_connections=1))
        server = serve(create_app(config))
    """
    started = []

    def _serve(target, router=None) -> TestServer:
        if not isinstance(target, HTTPServer):
            target = HTTPServer(target, router=router)
        test_srv = TestServer(target)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield _serve

    for test_srv in started:
        test_srv.stop()
