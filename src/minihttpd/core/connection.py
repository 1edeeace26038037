"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: reads exactly one HTTP request from it,
sends exactly one response, and closes it.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A client that sends

    POST /files/a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello

may arrive as one recv() or as several:

    recv() → "POST /files/a HTTP/1.1\r\nCont"
    recv() → "ent-Length: 5\r\n\r\nhel"
    recv() → "lo"

A single fixed-size read would silently truncate large requests. Instead
read_request() keeps reading until it has:

    1. the header terminator \r\n\r\n, then
    2. exactly Content-Length body bytes (or the peer closes).

Anything after the declared body is dropped: one request per connection,
no pipelining.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    ACCEPTED ──► PARSED ──► ROUTED ──► HANDLED ──► WRITTEN ──► CLOSED
        │                                             ▲
        │  malformed request                          │
        └──────────── 400 / 413 error response ───────┘

There is no way back from CLOSED: no keep-alive.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..http.request import HEADER_TERMINATOR, RequestTooLarge


logger = logging.getLogger(__name__)

# Upper bound on how long close() keeps reading after the response
DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    Tracked for logging and debugging; each connection moves strictly
    forward through these.
    """
    ACCEPTED = "accepted"    # Just accepted, nothing read yet
    PARSED = "parsed"        # Request bytes read and parsed
    ROUTED = "routed"        # Handler selected
    HANDLED = "handled"      # Handler produced a response
    WRITTEN = "written"      # Response sent
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1. INCREMENTAL READING                                              │
    │     └── Loop recv() until headers, then until Content-Length        │
    │     └── Cap the total at max_request_size                           │
    │                                                                      │
    │  2. STATE TRACKING                                                   │
    │     └── ACCEPTED → ... → CLOSED, for the debug log                  │
    │                                                                      │
    │  3. CLEAN CLOSE                                                      │
    │     └── shutdown(SHUT_WR), drain, close                             │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique connection identifier (for logging).
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
    """

    # Required parameters
    socket: socket.socket
    address: tuple

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    # Configuration (passed from ServerConfig)
    buffer_size: int = 1024
    timeout: Optional[float] = None
    max_request_size: int = 10 * 1024 * 1024

    # Internal state
    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        """Apply the read/write timeout (None = block forever)."""
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        ┌─────────────────────────────────────────────────────────────────┐
        │   while no \\r\\n\\r\\n:     recv() → buffer                         │
        │   Content-Length?        parse from header bytes               │
        │   while body short:      recv() → buffer                       │
        │   return headers + exactly Content-Length body bytes           │
        └─────────────────────────────────────────────────────────────────┘

        If the peer closes early, whatever arrived is returned and the
        parser decides what to make of it.

        Returns:
            The request bytes, or None if the peer closed without sending
            anything.

        Raises:
            TimeoutError: The socket timeout expired mid-read.
            RequestTooLarge: The request exceeds max_request_size.
        """
        try:
            # ─────────────────────────────────────────────────────────────
            # STEP 1: Read until we have complete headers
            # ─────────────────────────────────────────────────────────────
            header_end = self._buffer.find(HEADER_TERMINATOR)
            while header_end == -1:
                # Only rescan the tail: the terminator may straddle chunks
                scan_from = max(0, len(self._buffer) - len(HEADER_TERMINATOR) + 1)
                chunk = self._recv()
                if not chunk:
                    request_data = bytes(self._buffer)
                    self._buffer = bytearray()
                    return request_data or None
                self._append(chunk)
                header_end = self._buffer.find(HEADER_TERMINATOR, scan_from)

            # ─────────────────────────────────────────────────────────────
            # STEP 2: Read the declared body
            # ─────────────────────────────────────────────────────────────
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._parse_content_length(bytes(self._buffer[:header_end]))

            if body_start + content_length > self.max_request_size:
                raise RequestTooLarge(body_start + content_length, self.max_request_size)

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Peer closed mid-body; take what we have
                self._append(chunk)

            # ─────────────────────────────────────────────────────────────
            # STEP 3: Drop anything past the declared body
            # ─────────────────────────────────────────────────────────────
            request_data = bytes(self._buffer[:body_start + content_length])
            self._buffer = bytearray()
            return request_data

        except socket.timeout:
            raise TimeoutError(f"[{self.id}] Request read timeout")

    def _append(self, chunk: bytes):
        """Add received bytes to the buffer, enforcing the size cap."""
        self._buffer.extend(chunk)
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(len(self._buffer), self.max_request_size)

    def _recv(self) -> bytes:
        """
        Receive up to buffer_size bytes.

        Returns:
            Received bytes, or empty bytes if the connection was closed
            or reset by the peer.
        """
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(head: bytes) -> int:
        """
        Find Content-Length in raw header bytes.

        We need it BEFORE the request is parsed, to know how much more to
        read. Same rules as the parser: case-insensitive name, later
        occurrence wins, plain digits only, otherwise 0.
        """
        content_length = 0
        for line in head.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b": ")
            if sep and name.strip().lower() == b"content-length":
                value = value.strip()
                content_length = int(value) if value.isdigit() else 0
        return content_length

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send the serialized response with a single sendall().

        Returns:
            True if sent, False if the client had already gone away.
        """
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.state = ConnectionState.WRITTEN
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        1. shutdown(SHUT_WR): send FIN so the client sees end-of-response
           (needed when the response has no Content-Length)
        2. Drain whatever the client still sends, for at most DRAIN_TIMEOUT
           seconds in total
        3. close(): release the file descriptor

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        deadline = time.time() + DRAIN_TIMEOUT
        try:
            while True:
                remaining = deadline - time.time()
                if remaining <= 0:
                    break  # Client keeps sending; stop listening
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                data = conn.read_request()
                conn.send_response(response)
            # Connection closed here, even on error
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
