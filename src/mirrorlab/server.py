"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties config, sockets, threads, parsing, middleware and routing together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────┬───────┘        │
    │           ▼                   ▼                   ▼                 │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │  Connection  │    │ keep-alive   │    │  mirror /    │        │
    │    │ head + body  │    │    loop      │    │  health /    │        │
    │    └──────────────┘    └──────────────┘    │  pages       │        │
    │                                            └──────────────┘        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. accept()                       SocketServer
    2. queue the connection           ThreadPool (503 if full)
    3. read_head()                    Connection, up to the blank line
    4. parse_head()                   RequestParser (400 / 431 / 505)
    5. attach body stream             Connection.iter_body(), not read yet
    6. middleware → Router.handle     POST: read_body() first, then handler
    7. discard_body()                 drain anything the handler ignored
    8. send, then keep-alive or close

=============================================================================
INJECTED ROUTER
=============================================================================

The route table is an ordinary Router passed to the constructor:

    server = HTTPServer(config)                   # default routes
    server = HTTPServer(config, router=my_router)  # anything else

Each server owns its router. Tests build a fresh one per case.

=============================================================================
INTERVIEW QUESTIONS ABOUT THIS SERVER
=============================================================================

Q: "Why drain the body the handler didn't read?"
A: "With keep-alive the next request starts right after this body. If
   a GET arrives with a body and nobody reads it, those bytes would be
   parsed as the next request line."

Q: "What happens when a handler raises?"
A: "The exception is logged with its traceback and the client gets a
   500 JSON error. The connection is then closed because the body may be
   half-read and the framing of the stream can no longer be trusted."

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import (
    SocketServer,
    Connection,
    ThreadPool,
    ClientDisconnected,
    MalformedBodyError,
    HeadTooLargeError,
)
from .core.connection import ConnectionState
from .handlers import FormPageHandler, MirrorHandler, health_check, index
from .http import (
    HTTPRequest,
    HTTPResponse,
    HTTPParseError,
    HTTPStatus,
    RequestParser,
    Router,
    error_response,
    internal_error,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


def build_router(config: Optional[ServerConfig] = None) -> Router:
    """
    The default route table.

        GET  /forms/post   HTML order form
        POST /post         request mirror
        GET  /health       liveness JSON
        GET  /             "Hello World!"
    """
    config = config or ServerConfig()
    router = Router()

    router.register("GET", "/forms/post", FormPageHandler(config.form_path).handle)
    router.register("POST", "/post", MirrorHandler().handle)
    router.register("GET", "/health", health_check(config.environment).handle)
    router.register("GET", "/", index)

    return router


class HTTPServer:
    """
    Threaded HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=3000))
        server.use(LoggingMiddleware())
        server.run()                      # blocks until SIGINT/SIGTERM

        # or from another thread
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready()
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            workers=self.config.workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_header_size=self.config.max_header_size)

        self._router = router if router is not None else build_router(self.config)
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). The real port once running, even for port 0."""
        return self._socket_server.address

    @property
    def port(self) -> int:
        return self.address[1]

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._socket_server.ready.wait(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server. Blocks until shutdown() or a signal.

        Args:
            host: Override config host.
            port: Override config port (0 = any free port).
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port
        self.config.validate()

        self._running = True
        self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        for line in self._router.describe():
            logger.debug(f"Route: {line}")

        try:
            self._socket_server.start(self._handle_connection, on_ready=self._on_ready)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Returns immediately."""
        self._socket_server.shutdown()

    def _on_ready(self, address: Tuple[str, int]):
        logger.info(f"Server start at port {address[1]}")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("mirrorlab").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=10.0)
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called by SocketServer for each accepted connection."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs in a worker thread).

        Protocol errors get an error response and close the connection.
        A client that disappears mid-body gets nothing: there is nobody
        left to answer.
        """
        with conn:
            while self._running:
                # ─────────────────────────────────────────────────────
                # READ + PARSE HEAD
                # ─────────────────────────────────────────────────────
                try:
                    head = conn.read_head()
                except HeadTooLargeError as e:
                    self._send_error(conn, HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE, str(e))
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                if head is None:
                    break

                try:
                    request = self._parser.parse_head(head, conn.address)
                except HTTPParseError as e:
                    self._send_error(conn, e.status_code, str(e))
                    break
                request.server_address = self.address

                # ─────────────────────────────────────────────────────
                # ATTACH BODY STREAM
                # ─────────────────────────────────────────────────────
                request.body_stream = conn.iter_body(
                    content_length=None if request.is_chunked else request.content_length,
                    chunked=request.is_chunked,
                )
                if request.expects_continue and (request.is_chunked or request.content_length):
                    conn.send_continue()

                # ─────────────────────────────────────────────────────
                # DISPATCH
                # ─────────────────────────────────────────────────────
                conn.state = ConnectionState.PROCESSING
                close_after = False

                try:
                    response = self._handler(request)
                    request.discard_body()
                except ClientDisconnected:
                    logger.debug(f"[{conn.id}] Client disconnected mid-body")
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request body timeout")
                    break
                except MalformedBodyError as e:
                    self._send_error(conn, HTTPStatus.BAD_REQUEST, str(e))
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error()
                    close_after = True

                # ─────────────────────────────────────────────────────
                # CONNECTION HEADERS + SEND
                # ─────────────────────────────────────────────────────
                keep_alive = (
                    request.is_keep_alive
                    and self.config.keep_alive
                    and self._running
                    and not close_after
                )
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        f"timeout={int(self.config.keep_alive_timeout)}",
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: int, message: str):
        """Error response for failures outside any handler."""
        response = error_response(status, message).set_header("Connection", "close")

        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServerConfig] = None,
    router: Optional[Router] = None,
    access_log: bool = True,
) -> HTTPServer:
    """
    Build a ready-to-run server: default routes (unless a router is
    given) and access logging.

        app = create_app(ServerConfig.from_env())
        app.run()
    """
    config = config or ServerConfig()
    server = HTTPServer(config, router)
    if access_log:
        server.use(LoggingMiddleware(log_format=config.log_format))
    return server


def serve_in_thread(server: HTTPServer, timeout: float = 5.0) -> threading.Thread:
    """
    Run a server on a daemon thread and wait until it is listening.

    Raises:
        RuntimeError: If the server is not listening within timeout.
    """
    thread = threading.Thread(target=server.run, name="mirrorlab-server", daemon=True)
    thread.start()
    if not server.wait_until_ready(timeout):
        server.shutdown()
        raise RuntimeError(f"Server did not start within {timeout}s")
    return thread
