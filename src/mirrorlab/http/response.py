"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them to bytes.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                   ← Status line               │
    │    Content-Type: application/json\r\n    ← Set by the handler        │
    │    Content-Length: 312\r\n               ← Added by to_bytes()       │
    │    Date: Mon, 19 Oct 2026 10:00:00 GMT\r\n                           │
    │    Server: mirrorlab/1.0\r\n                                          │
    │    Connection: keep-alive\r\n            ← Added by the server loop  │
    │    \r\n                                                              │
    │    {                                     ← Body                      │
    │      "args": {},                                                     │
    │      ...                                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Content types are sent exactly as given ("text/html", "text/plain",
"application/json") with no charset parameter appended: clients of this
server compare the header verbatim.

=============================================================================
INTERVIEW QUESTIONS ABOUT HTTP RESPONSES
=============================================================================

Q: "How does the client know when the response body ends?"
A: "Content-Length gives the exact byte count. We always compute it from
   the encoded body so keep-alive clients can find the next response."

Q: "Why pretty-print JSON in an API response?"
A: "Normally you wouldn't. This server is read by humans debugging their
   clients, so the echo payload is indented two spaces. The bytes cost
   nothing at this scale."

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, Union
import json
import re

from .status_codes import HTTPStatus, reason_phrase


TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
APPLICATION_JSON = "application/json"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Handlers return one of these; the server loop adds connection headers
    and calls to_bytes().
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {reason_phrase(self.status)}"

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "mirrorlab/1.0") -> bytes:
        """
        Serialize the response to bytes for sending over the socket.

        Content-Length, Date and Server are filled in unless the handler
        already set them.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

    ==========================================================================
    USAGE
    ==========================================================================

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"status": "healthy"}, pretty=True)
            .no_store()
            .build())

    Each method returns self except build().
    ==========================================================================
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body. Strings are encoded as UTF-8."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain text body with Content-Type: text/plain."""
        return self.body(text).content_type(TEXT_PLAIN)

    def html(self, html: Union[str, bytes]) -> "ResponseBuilder":
        """HTML body with Content-Type: text/html."""
        return self.body(html).content_type(TEXT_HTML)

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        JSON body with Content-Type: application/json.

        Args:
            data: Any JSON-serializable value.
            pretty: Indent with two spaces.
        """
        indent = 2 if pretty else None
        text = json.dumps(data, indent=indent, ensure_ascii=False)
        self._body = _escape_lone_surrogates(text).encode("utf-8")
        return self.content_type(APPLICATION_JSON)

    def no_store(self) -> "ResponseBuilder":
        """Forbid any cache from storing the response."""
        return self.header("Cache-Control", "no-store")

    def close_connection(self) -> "ResponseBuilder":
        return self.header("Connection", "close")

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def _escape_lone_surrogates(text: str) -> str:
    """
    Replace unpaired surrogates with \\uXXXX escapes.

    json.loads happily returns them for input like "\\ud800", but they
    have no UTF-8 encoding. Inside dumped JSON they only occur within
    string literals, where the escape is valid.
    """
    return _LONE_SURROGATE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), e.g.
    "Mon, 19 Oct 2026 10:00:00 GMT". Always GMT.
    """
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: str = TEXT_PLAIN) -> HTTPResponse:
    """
    Create a 200 OK response.

    dict/list bodies become pretty-printed JSON; str/bytes bodies are sent
    as-is with the given content type.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, (dict, list)):
        builder.json(body, pretty=True)
    else:
        builder.body(body).content_type(content_type)
    return builder.build()


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 with a plain-text body. This is what every unmatched request gets."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text(message).build()


def error_response(status: int, message: str) -> HTTPResponse:
    """JSON error body, used for protocol-level failures."""
    return (ResponseBuilder()
        .status(status)
        .json({"error": message})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
