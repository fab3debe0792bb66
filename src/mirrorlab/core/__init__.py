"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Binds host:port (port 0 = any free port), runs accept()          │
    │  • SIGTERM / SIGINT → graceful shutdown (main thread only)          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ new Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  • Fixed workers, bounded queue, 503 when full                      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker owns the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • read_head(): buffered read up to the blank line                  │
    │  • iter_body(): lazy Content-Length / chunked body stream           │
    │  • send_response(), close()                                          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import (
    Connection,
    ConnectionState,
    ClientDisconnected,
    MalformedBodyError,
    HeadTooLargeError,
)
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ClientDisconnected",
    "MalformedBodyError",
    "HeadTooLargeError",
    "ThreadPool",
]
