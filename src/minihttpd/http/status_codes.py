"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes minihttpd can put on the wire, with their reason phrases.

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬────────────────────────────────────────────────────────────┐
    │  Code  │  Produced by                                              │
    ├────────┼────────────────────────────────────────────────────────────┤
    │  200   │  /, /echo/{text}, /user-agent, GET /files/{name}          │
    │  201   │  POST /files/{name} (file written)                        │
    │  400   │  Malformed request line                                   │
    │  403   │  /files/{name} resolving outside the base directory       │
    │  404   │  Unknown route, missing file                              │
    │  405   │  /files/{name} with a method other than GET or POST       │
    │  413   │  Request larger than max_request_size                     │
    │  500   │  File cannot be opened for writing, handler crash         │
    │  503   │  Connection cap reached (max_connections)                 │
    └────────┴────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.OK.phrase
        'OK'
    """

    # 2xx Success
    OK = 200
    CREATED = 201

    # 4xx Client Errors
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
