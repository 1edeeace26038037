"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per handled request, on its own logger so it can be routed
or silenced separately from the server's diagnostic logging:

    logging.getLogger("minihttpd.access").setLevel(logging.WARNING)

=============================================================================
FORMATS
=============================================================================

text (Apache style, the default):

    127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "GET /echo/abc" 200 3 0.41ms

json (one object per line, for log shippers):

    {"request_id": "1f3a9c2e", "method": "GET", "path": "/echo/abc", ...}

The middleware only observes: the response it returns is the handler's
response, unmodified. Requests that fail before routing (400, 408, 413,
503) never reach it; the server logs those itself.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, asdict
from typing import Optional, Iterable

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("minihttpd.access")

LOG_FORMATS = ("text", "json")


@dataclass
class RequestLog:
    """Structured access log entry for one request."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Format as an Apache-style access log line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Should be added FIRST so its timing covers the rest of the chain:

        server.use(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            log_level: Level access lines are emitted at.
            skip_paths: Exact paths that are not logged.
        """
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown log format: {log_format!r}")

        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
