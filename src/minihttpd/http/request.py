"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read from one connection into a structured
HTTPRequest (method, path, headers, body).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /files/report.txt HTTP/1.1\r\n      ◄── request line       │
    │    ─┬── ────────┬──────── ───┬────                                  │
    │     │           │            │                                      │
    │   Method       Path       Version                                   │
    │                                                                      │
    │    Host: localhost:4221\r\n                 ◄── headers            │
    │    User-Agent: curl/8.4.0\r\n                                       │
    │    Content-Length: 5\r\n                                            │
    │    \r\n                                     ◄── end of headers     │
    │    hello                                    ◄── body (5 bytes)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. REQUEST LINE: everything up to the first CRLF. It must hold exactly
   two single spaces (METHOD SP PATH SP VERSION). Anything else raises
   MalformedRequestLine, which the server answers with 400 Bad Request.

2. HEADERS: one per line until the empty line. Each line is split on the
   first ": ". Names are stored lowercase so lookups are case-insensitive.
   When a name repeats, the LATER value wins.

3. BODY: exactly Content-Length bytes after the blank line. Extra bytes
   are ignored (one request per connection, no pipelining). If fewer
   bytes are available, we take what is there.

The path is kept RAW: no query-string splitting, no percent-decoding.
"/echo/hello%20world" echoes "hello%20world" verbatim.

=============================================================================
CHARACTER ENCODING
=============================================================================

The request line and headers are decoded as ISO-8859-1. Every byte maps
to exactly one code point, so encoding the string back with the same
codec gives the original bytes. Handlers that echo a path segment or a
header value rely on this to return the client's bytes unchanged.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


HEADER_ENCODING = "iso-8859-1"

CRLF = b"\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code the server should answer with:

        400 Bad Request       - Malformed request syntax
        413 Payload Too Large - Request exceeds size limit
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class MalformedRequestLine(HTTPParseError):
    """The request line is not METHOD SP PATH SP VERSION."""

    def __init__(self, line: str):
        super().__init__(f"Malformed request line: {line!r}", status_code=400)
        self.line = line


class RequestTooLarge(HTTPParseError):
    """The request exceeds the configured max_request_size."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Request too large: {size} bytes (limit {limit})",
            status_code=413,
        )
        self.size = size
        self.limit = limit


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Built once per connection by RequestParser and never modified after.

    Attributes:
        method:          "GET", "POST", ... exactly as sent
        path:            Raw request target, e.g. "/echo/abc"
        version:         "HTTP/1.1"
        headers:         Lowercase header name → value (last occurrence wins)
        body:            Body bytes, at most content_length long
        content_length:  Parsed Content-Length, 0 if absent or invalid
        client_address:  (ip, port) of the peer, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_length: int = 0
    client_address: Tuple[str, int] = ("", 0)

    @property
    def user_agent(self) -> str:
        """The User-Agent header, or "" when the client sent none."""
        return self.headers.get("user-agent", "")

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get a header value (case-insensitive lookup).

        Example:
            request.get_header("User-Agent")
            request.get_header("user-agent")   # same thing
        """
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────┐
        │  1. Size check            too large? → RequestTooLarge (413)  │
        │  2. Split at \\r\\n\\r\\n     headers | body                      │
        │  3. Request line          bad shape? → MalformedRequestLine   │
        │  4. Headers               "Name: Value", lowercase names      │
        │  5. Body                  first Content-Length bytes          │
        └───────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest
    """

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest request (headers + body) accepted,
                              in bytes. Default 10 MB.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Args:
            data: Raw request bytes accumulated from the socket.
            client_address: Peer (ip, port), carried through for logging.

        Returns:
            The parsed request.

        Raises:
            MalformedRequestLine: The first line is not three fields
                                  separated by single spaces.
            RequestTooLarge: data is larger than max_request_size.
        """
        if len(data) > self.max_request_size:
            raise RequestTooLarge(len(data), self.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # SPLIT HEADER SECTION FROM BODY
        # ─────────────────────────────────────────────────────────────────
        # A buffer without the blank line is treated as headers only.
        header_end = data.find(HEADER_TERMINATOR)
        if header_end == -1:
            head, rest = data, b""
        else:
            head, rest = data[:header_end], data[header_end + len(HEADER_TERMINATOR):]

        lines = head.decode(HEADER_ENCODING).split("\r\n")

        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])
        content_length = self._parse_content_length(headers)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=rest[:content_length],
            content_length=content_length,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Split "METHOD SP PATH SP VERSION" into its three parts.

        Two spaces, no more, no less, and no empty field:

            "GET / HTTP/1.1"         → ("GET", "/", "HTTP/1.1")
            "GET /"                  → MalformedRequestLine
            "GET  / HTTP/1.1"        → MalformedRequestLine (empty field)
        """
        parts = line.split(" ")
        if len(parts) != 3 or not all(parts):
            raise MalformedRequestLine(line)

        method, path, version = parts
        return method, path, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a dict keyed by lowercase name.

        Lines without ": " are skipped (lenient parsing). A repeated name
        overwrites the earlier value.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            name, sep, value = line.partition(": ")
            if not sep:
                continue

            headers[name.strip().lower()] = value

        return headers

    def _parse_content_length(self, headers: Dict[str, str]) -> int:
        """
        Content-Length as a non-negative integer, 0 if absent or invalid.

        Only plain ASCII digits are accepted; "-5", "+5" and "abc" all
        count as no body.
        """
        value = headers.get("content-length", "").strip()
        if value.isascii() and value.isdigit():
            return int(value)
        return 0
