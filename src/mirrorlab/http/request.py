"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the head of an HTTP/1.1 request (request line + headers) into a
structured HTTPRequest. The body is NOT part of parsing: it stays on the
socket and is exposed as a lazy stream that the router buffers only when
a POST route matched.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │    POST /post?param1=value1 HTTP/1.1\r\n                       │ │
    │  │    ──┬─ ──────────┬───────── ────┬────                         │ │
    │  │    Method      Target          Version                          │ │
    │  │                   │                                             │ │
    │  │         ┌─────────┴──────────┐                                 │ │
    │  │       Path            Query String                              │ │
    │  │       /post         param1=value1                               │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: localhost:3000\r\n                                    │ │
    │  │    Content-Type: application/x-www-form-urlencoded\r\n         │ │
    │  │    Content-Length: 27\r\n                                      │ │
    │  │    X-Tag: a\r\n                    ← repeated headers are      │ │
    │  │    X-Tag: b\r\n                      kept as separate values   │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                          ← parse_head() stops here     │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (streamed) ──────────────────────────────────────────────┐ │
    │  │    custname=John+Doe&size=large                                │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY A MULTIMAP FOR HEADERS?
=============================================================================

A plain dict forces a choice when a header repeats: overwrite it, or
join the values with commas. Both lose information a mirror endpoint is
supposed to report. Headers keeps every (name, value) pair in arrival
order and answers case-insensitive lookups on top of that list:

    headers.get("x-tag")        → "a"          (first value)
    headers.get_list("X-Tag")   → ["a", "b"]   (all values, in order)
    list(headers)               → ["host", "content-type", ..., "x-tag"]

=============================================================================
INTERVIEW QUESTIONS ABOUT HTTP PARSING
=============================================================================

Q: "Why not read the whole body before parsing?"
A: "Because the server doesn't know yet whether anybody wants it. A GET
   to an unknown path with a 1 GB body should get its 404 without the
   upload being buffered. The head says how the body is framed
   (Content-Length or chunked); the body itself is pulled lazily."

Q: "What if both Content-Length and Transfer-Encoding are present?"
A: "RFC 7230 §3.3.3: Transfer-Encoding wins and Content-Length is
   ignored. Trusting Content-Length there is the classic request
   smuggling bug."

Q: "How do you handle malformed requests?"
A: "HTTPParseError carries the status to answer with: 400 for bad
   syntax, 431 for an oversized head, 505 for an unknown version."

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client:
        400 Bad Request                    - Malformed request syntax
        431 Request Header Fields Too Large - Head exceeds the limit
        505 HTTP Version Not Supported     - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


class Headers:
    """
    Ordered, case-insensitive multimap of request headers.

    Names keep the spelling they arrived with in items(); lookups and
    iteration use the lowercase form.
    """

    def __init__(self, items: HeaderInput = None):
        self._items: List[Tuple[str, str]] = []
        if items is None:
            return
        if isinstance(items, Mapping):
            items = items.items()
        for name, value in items:
            self.add(name, value)

    def add(self, name: str, value: str) -> None:
        self._items.append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header, or default."""
        key = name.lower()
        for item_name, value in self._items:
            if item_name.lower() == key:
                return value
        return default

    def get_list(self, name: str) -> List[str]:
        """All values of a header in the order they were received."""
        key = name.lower()
        return [value for item_name, value in self._items if item_name.lower() == key]

    def items(self) -> List[Tuple[str, str]]:
        """Raw (name, value) pairs as received."""
        return list(self._items)

    def keys(self) -> List[str]:
        """Distinct lowercase names in first-appearance order."""
        return [name for name in self]

    def extend_last(self, continuation: str) -> None:
        # obs-fold: a line starting with whitespace continues the previous value
        if not self._items:
            return
        name, value = self._items[-1]
        self._items[-1] = (name, f"{value} {continuation}" if value else continuation)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for name, _ in self._items:
            key = name.lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.get(name) is not None

    def __len__(self) -> int:
        return len({name.lower() for name, _ in self._items})

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


def split_target(target: str) -> Tuple[str, str]:
    """
    Split a request target into (path, query string).

    Origin-form targets ("/post?a=1") are split on the first "?" without
    any decoding or normalization. Absolute-form targets
    ("http://host/post?a=1") go through urlsplit.
    """
    target = target.partition("#")[0]
    if target.startswith("/"):
        path, _, query = target.partition("?")
        return path, query
    parts = urlsplit(target)
    return parts.path or "/", parts.query


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    REQUEST LIFECYCLE
    =========================================================================

        head bytes     parse_head()     HTTPRequest      Router.handle()
        ──────────►   ─────────────►   body_stream   ──►  POST? read_body()
                                       (lazy)             GET?  handler now

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Method token exactly as sent ("GET", "POST", ...)
        target:         Raw request target, path plus query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Headers multimap
        body:           Buffered body bytes (empty until read_body())
        client_address: (ip, port) of the peer, None if unknown
        server_address: Bound (host, port) of the listening socket, set
                        by the server loop
        body_stream:    Iterator of body chunks still on the wire

    =========================================================================
    """

    method: str
    target: str = "/"
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    client_address: Optional[Tuple[str, int]] = None
    server_address: Optional[Tuple[str, int]] = None
    body_stream: Optional[Iterator[bytes]] = field(default=None, repr=False)

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)
        self.path, self.query_string = split_target(self.target)

    # =========================================================================
    # BODY
    # =========================================================================

    def read_body(self) -> bytes:
        """
        Buffer the whole body and return it.

        Reads the stream until it ends. There is no size limit: whatever
        the client sends is accumulated. Calling it again returns the
        already buffered bytes.
        """
        if self.body_stream is not None:
            stream, self.body_stream = self.body_stream, None
            self.body = b"".join(stream)
        return self.body

    def discard_body(self) -> None:
        """Drain an unread body so the next request on the connection starts clean."""
        if self.body_stream is not None:
            stream, self.body_stream = self.body_stream, None
            for _ in stream:
                pass

    @property
    def text(self) -> str:
        """Body decoded as UTF-8, invalid sequences replaced."""
        return self.body.decode("utf-8", errors="replace")

    # =========================================================================
    # HEADER SHORTCUTS
    # =========================================================================

    @property
    def content_type(self) -> str:
        """Raw Content-Type value including parameters, "" if absent."""
        return self.headers.get("content-type", "")

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value.split(",")[0].strip())
        except ValueError:
            return None

    @property
    def is_chunked(self) -> bool:
        encoding = ",".join(self.headers.get_list("transfer-encoding")).lower()
        return "chunked" in encoding

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def client_ip(self) -> Optional[str]:
        if not self.client_address or not self.client_address[0]:
            return None
        return self.client_address[0]

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        tokens = {
            token.strip().lower()
            for value in self.headers.get_list("connection")
            for token in value.split(",")
        }
        if self.version == "HTTP/1.1":
            return "close" not in tokens
        return "keep-alive" in tokens

    @property
    def expects_continue(self) -> bool:
        return (
            self.version == "HTTP/1.1"
            and self.headers.get("expect", "").strip().lower() == "100-continue"
        )


class RequestParser:
    """
    Parses request heads into HTTPRequest objects.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        Head bytes (everything before \\r\\n\\r\\n)
              │
              ▼
        1. Size check          → HTTPParseError(431)
        2. Request line        → HTTPParseError(400 / 505)
        3. Header lines        → Headers multimap (obs-fold supported)
        4. Framing check       → HTTPParseError(400) on bad Content-Length
              │
              ▼
        HTTPRequest (body_stream attached later by the server)

    Any method token is accepted. Whether it means anything is the
    router's business: an unknown method simply has no route.
    ==========================================================================
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) (\S+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s][^:]*):[ \t]*(.*?)[ \t]*$")
    CONTENT_LENGTH_PATTERN = re.compile(r"^\d+$")

    def __init__(self, max_header_size: int = 64 * 1024):
        self.max_header_size = max_header_size

    def parse_head(
        self,
        head: bytes,
        client_address: Optional[Tuple[str, int]] = None,
    ) -> HTTPRequest:
        """
        Parse a request head into an HTTPRequest with an empty body.

        Args:
            head: Request line and header lines, with or without the
                  terminating blank line.
            client_address: Peer (ip, port) tuple.

        Raises:
            HTTPParseError: If the head is malformed.
        """
        if len(head) > self.max_header_size:
            raise HTTPParseError(
                f"Request head too large: {len(head)} bytes",
                status_code=431,
            )

        text = head.decode("utf-8", errors="replace")
        lines = text.split("\r\n")
        while lines and lines[-1] == "":
            lines.pop()
        if not lines:
            raise HTTPParseError("Empty request")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])
        self._check_framing(headers)

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            client_address=client_address,
        )

    def parse(
        self,
        data: bytes,
        client_address: Optional[Tuple[str, int]] = None,
    ) -> HTTPRequest:
        """
        Parse a complete request held in memory (head and body).

        The body is whatever follows the blank line, cut to Content-Length
        when that header is present.
        """
        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        request = self.parse_head(data[:header_end], client_address)
        body = data[header_end + 4:]
        length = request.content_length
        request.body = body[:length] if length is not None else body
        return request

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        return method, target, version

    def _parse_headers(self, lines: List[str]) -> Headers:
        headers = Headers()

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                headers.extend_last(line.strip())
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            name, value = match.groups()
            headers.add(name, value)

        return headers

    def _check_framing(self, headers: Headers) -> None:
        lengths = headers.get_list("content-length")
        if not lengths:
            return

        values = {
            part.strip()
            for value in lengths
            for part in value.split(",")
        }
        if len(values) != 1 or not self.CONTENT_LENGTH_PATTERN.match(next(iter(values))):
            raise HTTPParseError(f"Invalid Content-Length: {', '.join(lengths)}")

