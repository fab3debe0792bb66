"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request/response processing, applied around the router in
a Chain of Responsibility:

    LoggingMiddleware → (your middleware) → Router.handle

LoggingMiddleware:
    Access log line per request (text or JSON) with timing, plus an
    X-Request-ID response header.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "LoggingMiddleware",
    "RequestLog",
]
