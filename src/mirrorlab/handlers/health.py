"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

GET /health reports that the process is up, for load balancers, CI wait
loops and humans.

=============================================================================
RESPONSE FORMAT
=============================================================================

    HTTP/1.1 200 OK
    Content-Type: application/json
    Cache-Control: no-store

    {
      "status": "healthy",
      "timestamp": "2026-10-19T10:00:00.123Z",   ← UTC, millisecond precision
      "uptime": 12.345,                           ← seconds since process start
      "environment": "development"                ← NODE_ENV
    }

The endpoint has no dependencies to check, so it is always 200 while the
process can answer at all. That makes it a liveness probe, and CI jobs
poll it to know when the server under test is up.

=============================================================================
INTERVIEW QUESTIONS ABOUT HEALTH CHECKS
=============================================================================

Q: "Why should health checks never be cached?"
A: "A cached 200 from a proxy says nothing about the process behind it.
   Cache-Control: no-store makes every probe reach the server."

Q: "Why a monotonic clock for uptime?"
A: "Wall-clock time can jump (NTP, DST, an operator). time.monotonic()
   only moves forward, so uptime never goes negative."

=============================================================================
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


# Import time of the package, which is process start for `python -m mirrorlab`
PROCESS_STARTED = time.monotonic()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HealthHandler:
    """
    Health check endpoint handler.

        health = HealthHandler(environment="production")
        router.register("GET", "/health", health.handle)
    """

    def __init__(
        self,
        environment: str = "development",
        started_at: float = PROCESS_STARTED,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.environment = environment
        self._started_at = started_at
        self._clock = clock

    @property
    def uptime(self) -> float:
        return max(0.0, self._clock() - self._started_at)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        body = {
            "status": "healthy",
            "timestamp": utc_timestamp(),
            "uptime": round(self.uptime, 3),
            "environment": self.environment,
        }
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(body, pretty=True)
            .no_store()
            .build())


def health_check(environment: str = "development") -> HealthHandler:
    """Factory used by build_router()."""
    return HealthHandler(environment=environment)
