"""
=============================================================================
MIRRORLAB - HTTP Mirror Server for Test Suites
=============================================================================

A small HTTP/1.1 server that echoes each request back as JSON, in the
style of httpbin's /post endpoint, plus a static order form to drive it
from end-to-end tests.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       MIRRORLAB ARCHITECTURE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. SOCKETS + THREADS (core/)                                      │
    │      - accept loop, one worker per connection                       │
    │      - head read to the blank line, body streamed on demand         │
    │                                                                     │
    │   2. HTTP (http/)                                                   │
    │      - request head parsing, header multimap                        │
    │      - response building                                            │
    │      - exact-match router, 404 fallback                             │
    │                                                                     │
    │   3. HANDLERS (handlers/)                                           │
    │      - POST /post       request mirror                              │
    │      - GET  /forms/post order form                                  │
    │      - GET  /health     liveness                                    │
    │      - GET  /           Hello World!                                │
    │                                                                     │
    │   4. TEST HELPERS (testing.py)                                      │
    │      - form page driver with fallback locators                      │
    │      - env:NAME URL resolution                                      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    mirrorlab/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI entry point (python -m mirrorlab)
    ├── server.py            # HTTPServer, build_router, create_app
    ├── config.py            # ServerConfig dataclass
    ├── testing.py           # FormPage, MirrorClient, resolve_url
    ├── public/form.html     # Order form served at /forms/post
    ├── core/                # socket_server, connection, thread_pool
    ├── http/                # request, response, router, status_codes
    ├── middleware/          # base, logging
    └── handlers/            # mirror, health, pages

=============================================================================
QUICK START
=============================================================================

    from mirrorlab import ServerConfig, create_app

    app = create_app(ServerConfig(port=3000))
    app.run()

    $ curl -d 'topping=bacon&topping=cheese' localhost:3000/post
    {
      "args": {},
      ...
      "form": {
        "topping": [
          "bacon",
          "cheese"
        ]
      },
      "json": null
    }

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, build_router, create_app

__all__ = ["HTTPServer", "ServerConfig", "build_router", "create_app", "__version__"]
