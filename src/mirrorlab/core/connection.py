"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with buffered reading suited to HTTP.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

recv() returns whatever the kernel has, which may be half a request line
or two pipelined requests at once. So the connection keeps a buffer and
looks for protocol delimiters:

    recv() → b"POST /post HTTP/1.1\\r\\nHost: loc"
    recv() → b"alhost\\r\\nContent-Length: 5\\r\\n\\r\\nhel"    ← head done
    recv() → b"lo"                                          ← body done

=============================================================================
HEAD VS BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │                                                                  │
    │   read_head()    buffer until \\r\\n\\r\\n, return the head bytes   │
    │                  (anything after it stays in the buffer)         │
    │                                                                  │
    │   iter_body()    generator over the body, nothing read until     │
    │                  someone iterates:                               │
    │                                                                  │
    │                  Content-Length: N   → exactly N bytes           │
    │                  chunked             → decode chunk framing      │
    │                  neither             → empty body                │
    │                                                                  │
    └─────────────────────────────────────────────────────────────────┘

The head is size-limited because it must be held whole before parsing.
The body is never size-limited: it is handed out chunk by chunk and the
caller decides whether to keep it.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                  │
              └──────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class ClientDisconnected(ConnectionError):
    """The peer closed the connection before the body was complete."""


class MalformedBodyError(ValueError):
    """Chunked transfer coding that cannot be decoded."""


class HeadTooLargeError(ValueError):
    """The request head grew past max_header_size."""


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │  1. BUFFERED READING   heads and bodies out of an arbitrary stream   │
    │  2. TIMEOUTS           head timeout, keep-alive idle, body timeout   │
    │  3. STATE TRACKING     for logs and debugging                        │
    │  4. GRACEFUL CLOSE     FIN, drain, close                             │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        requests_handled: Number of request heads read so far.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    body_timeout: Optional[float] = None
    max_header_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING THE HEAD
    # =========================================================================

    def read_head(self) -> Optional[bytes]:
        """
        Read one request head (request line + headers).

        Returns:
            The head bytes without the terminating blank line, or None if
            the client closed the connection (or went idle on keep-alive)
            before sending anything.

        Raises:
            TimeoutError: The first request, or a half-sent head, timed out.
            HeadTooLargeError: The head exceeds max_header_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while True:
                # Stray CRLFs between requests are allowed (RFC 7230 §3.5)
                self._buffer = self._buffer.lstrip(b"\r\n")

                header_end = self._buffer.find(b"\r\n\r\n")
                if header_end != -1:
                    break

                if len(self._buffer) > self.max_header_size:
                    raise HeadTooLargeError(f"Request head too large: {len(self._buffer)} bytes")

                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk

            if header_end > self.max_header_size:
                raise HeadTooLargeError(f"Request head too large: {header_end} bytes")

            head = self._buffer[:header_end]
            self._buffer = self._buffer[header_end + 4:]
            self.requests_handled += 1
            return head

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request head read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING THE BODY
    # =========================================================================

    def iter_body(self, content_length: Optional[int] = None, chunked: bool = False) -> Iterator[bytes]:
        """
        Stream a request body.

        Nothing is read from the socket until the generator is iterated.
        Reads use body_timeout (None = wait indefinitely).

        Raises (during iteration):
            ClientDisconnected: The peer closed before the body ended.
            MalformedBodyError: Invalid chunked framing.
            TimeoutError: body_timeout elapsed.
        """
        if chunked:
            return self._timed(self._iter_chunked())
        if content_length:
            return self._timed(self._iter_fixed(content_length))
        return iter(())

    def _timed(self, body: Iterator[bytes]) -> Iterator[bytes]:
        self.socket.settimeout(self.body_timeout)
        try:
            yield from body
        except socket.timeout:
            raise TimeoutError("Request body read timeout") from None
        finally:
            self.socket.settimeout(self.timeout)

    def _iter_fixed(self, length: int) -> Iterator[bytes]:
        remaining = length
        while remaining > 0:
            chunk = self._take(remaining)
            remaining -= len(chunk)
            yield chunk

    def _iter_chunked(self) -> Iterator[bytes]:
        #   5\r\nhello\r\n  0\r\n  [trailers]\r\n
        while True:
            size_line = self._read_line()
            size_text = size_line.split(b";", 1)[0].strip()
            try:
                size = int(size_text, 16)
            except ValueError:
                raise MalformedBodyError(f"Invalid chunk size: {size_text!r}") from None
            if size < 0:
                raise MalformedBodyError(f"Invalid chunk size: {size_text!r}")

            if size == 0:
                while self._read_line():
                    pass
                return

            remaining = size
            while remaining > 0:
                data = self._take(remaining)
                remaining -= len(data)
                yield data

            if self._read_line() != b"":
                raise MalformedBodyError("Missing CRLF after chunk data")

    def _take(self, limit: int) -> bytes:
        """Up to limit bytes, from the buffer first, then one recv()."""
        if not self._buffer:
            chunk = self._recv()
            if not chunk:
                raise ClientDisconnected("Connection closed mid-body")
            self._buffer = chunk

        data, self._buffer = self._buffer[:limit], self._buffer[limit:]
        return data

    def _read_line(self) -> bytes:
        while b"\r\n" not in self._buffer:
            if len(self._buffer) > self.max_header_size:
                raise MalformedBodyError("Chunk framing line too long")
            chunk = self._recv()
            if not chunk:
                raise ClientDisconnected("Connection closed mid-body")
            self._buffer += chunk

        line, _, self._buffer = self._buffer.partition(b"\r\n")
        return line

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True if sent, False if the connection is gone.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def send_continue(self) -> bool:
        """Interim 100 Continue for clients that sent Expect: 100-continue."""
        return self.send_response(b"HTTP/1.1 100 Continue\r\n\r\n")

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully: FIN, drain briefly, close.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
