"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mirrorlab import HTTPServer, ServerConfig
from mirrorlab.http import HTTPRequest, Router
from mirrorlab.testing import MirrorClient


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /health?verbose=1 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a form body."""
    body = b"custname=John+Doe&topping=bacon&topping=cheese"
    return (
        b"POST /post?param1=value1 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def make_request():
    """Build an HTTPRequest with its body already buffered."""
    def _make(
        method: str = "POST",
        target: str = "/post",
        headers=None,
        body: bytes = b"",
        client_address=("127.0.0.1", 54321),
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            target=target,
            headers=headers or [],
            body=body,
            client_address=client_address,
        )
    return _make


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=2,
        timeout=5.0,
        keep_alive_timeout=2.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    @property
    def client(self) -> MirrorClient:
        return MirrorClient(self.base_url, timeout=5.0)

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes, read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(data)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A live server with the default routes on a free port."""
    helper = TestServer(HTTPServer(config))
    helper.start()
    yield helper
    helper.stop()


@pytest.fixture
def make_server(config: ServerConfig):
    """Start servers with a custom router; all are stopped afterwards."""
    started = []

    def _make(router: Optional[Router] = None, **overrides) -> TestServer:
        for key, value in overrides.items():
            setattr(config, key, value)
        helper = TestServer(HTTPServer(config, router=router))
        helper.start()
        started.append(helper)
        return helper

    yield _make

    for helper in started:
        helper.stop()
