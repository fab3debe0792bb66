"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the mirror server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m mirrorlab 4000                                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── PORT=4000 NODE_ENV=test python -m mirrorlab               │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The variable names (PORT, NODE_ENV) are the ones the test suites and
deployment scripts already export, so the server can be dropped in behind
them without renaming anything.

=============================================================================
INTERVIEW QUESTIONS ABOUT CONFIGURATION
=============================================================================

Q: "Why parse PORT yourself instead of trusting int()?"
A: "int('abc') raises a ValueError that says nothing about where the
   value came from. Wrapping it lets the error name the variable, which
   is what an operator staring at a crash loop needs to see."

Q: "How do you validate configuration?"
A: "Validate eagerly at startup, not lazily at first use.
   Fail fast with clear error messages."

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_FORM_PATH = os.path.join(os.path.dirname(__file__), "public", "form.html")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class ServerConfig:
    """
    Configuration for the mirror server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size

    TIMEOUTS
    - timeout (request head), keep_alive_timeout, body_timeout

    HTTP SETTINGS
    - keep_alive, max_header_size

    THREADING SETTINGS
    - workers, queue_size

    APPLICATION
    - environment, form_path

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to. All interfaces by default so the server is
    reachable from containers and CI runners.
    """

    port: int = 3000
    """
    The port number to listen on. 0 asks the OS for a free port, which the
    test suite uses to run several servers side by side.
    """

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Size of each recv() call in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS
    # ─────────────────────────────────────────────────────────────────────

    timeout: Optional[float] = 30.0
    """
    Timeout for reading a request head (request line + headers).
    None = block forever.
    """

    keep_alive_timeout: float = 5.0
    """Idle time allowed between requests on a kept-alive connection."""

    body_timeout: Optional[float] = None
    """
    Timeout for each read while buffering a request body.
    None = wait for the client as long as it takes. A stalled upload only
    ties up its own worker thread.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    max_header_size: int = 64 * 1024
    """
    Largest accepted request head in bytes. Bodies are never limited;
    only the head is, because it must sit in memory before parsing.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 8
    """Number of worker threads serving connections."""

    queue_size: int = 100
    """Connections allowed to wait for a free worker before 503."""

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    environment: str = "development"
    """Deployment environment name, reported by /health."""

    form_path: str = field(default=DEFAULT_FORM_PATH)
    """HTML file served at /forms/post."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    server_name: str = "mirrorlab/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        PORT        Server port (default: 3000)
        NODE_ENV    Environment name for /health (default: development)
        HOST        Bind address (default: 0.0.0.0)
        WORKERS     Worker threads (default: 8)
        LOG_LEVEL   Logging level (default: INFO)
        LOG_FORMAT  Access log format (default: text)

        =====================================================================

        Raises:
            ValueError: If PORT or WORKERS is not an integer.
        """
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            workers=_env_int("WORKERS", 8),
            environment=os.getenv("NODE_ENV") or "development",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer.__init__ so a bad value stops the process
        before the socket is bound.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.body_timeout is not None and self.body_timeout <= 0:
            raise ValueError("body_timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Type-safe configuration with dataclass
# 2. PORT / NODE_ENV compatible environment loading
# 3. Validation at startup (fail-fast)
# =============================================================================
