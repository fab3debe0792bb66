"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can actually emit, with their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK                - route matched                     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request       - malformed request line / headers  │
    │        │ 404 Not Found         - no route, or form file missing    │
    │        │ 408 Request Timeout   - client never finished the head    │
    │        │ 431 Header Too Large  - head exceeds max_header_size      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error    - handler raised                    │
    │        │ 503 Unavailable       - worker queue full                 │
    │        │ 505 Version           - not HTTP/1.0 or HTTP/1.1          │
    └────────┴───────────────────────────────────────────────────────────┘

Note there is no 405: an unknown method is simply "no route" and gets
the same 404 as an unknown path.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:
        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200

    BAD_REQUEST = 400
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(code: int) -> str:
    """Reason phrase for any integer code, 'Unknown' if we never emit it."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"
