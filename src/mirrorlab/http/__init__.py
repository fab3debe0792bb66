"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

Translates bytes from the connection layer into HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   b"POST /post HTTP/1.1\r\n..."  →  HTTPRequest(method="POST", ...)  │
    │   Headers multimap, lazy body stream, RequestParser                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   ResponseBuilder().json({...}, pretty=True).build()                │
    │   HTTPResponse.to_bytes() → b"HTTP/1.1 200 OK\r\n..."               │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   (POST, "/post") → mirror(request)    anything else → 404          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus.NOT_FOUND → 404, phrase="Not Found"                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, Headers, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    not_found,
    error_response,
    internal_error,
)
from .router import Router, Route, Method
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "Headers",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "not_found",
    "error_response",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "Method",

    # Status codes
    "HTTPStatus",
]
