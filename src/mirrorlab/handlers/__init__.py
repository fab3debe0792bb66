"""
=============================================================================
REQUEST HANDLERS
=============================================================================

    ┌──────────┬──────────────┬──────────────────────────────────────────┐
    │ Method   │ Path         │ Handler                                  │
    ├──────────┼──────────────┼──────────────────────────────────────────┤
    │ GET      │ /            │ pages.index         "Hello World!"       │
    │ GET      │ /forms/post  │ pages.FormPageHandler  HTML order form   │
    │ POST     │ /post        │ mirror.MirrorHandler   request echo JSON │
    │ GET      │ /health      │ health.HealthHandler   liveness JSON     │
    └──────────┴──────────────┴──────────────────────────────────────────┘

Every handler takes an HTTPRequest and returns an HTTPResponse. Handlers
hold no shared mutable state, so any worker thread can run any of them.

=============================================================================
"""

from .mirror import MirrorHandler
from .health import HealthHandler, health_check
from .pages import FormPageHandler, index

__all__ = [
    "MirrorHandler",
    "HealthHandler",
    "health_check",
    "FormPageHandler",
    "index",
]
