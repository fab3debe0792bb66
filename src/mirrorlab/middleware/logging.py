"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per request, after the response is built.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default), Apache-style:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "POST /post?a=1" 200 412 │
    │ 1.73ms                                                              │
    └─────────────────────────────────────────────────────────────────────┘

    JSON, one object per line, for log shippers:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "POST", "path": "/post",       │
    │  "query": "a=1", "client_ip": "127.0.0.1", "status_code": 200, ...} │
    └─────────────────────────────────────────────────────────────────────┘

Every response also carries the id as X-Request-ID, so a failing test
can quote the id and the matching server log line can be found.

Request bodies are never logged: this server exists to receive whatever
clients throw at it, including credentials in test forms.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import List, Optional
from dataclasses import asdict, dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# Configure separately from the server logger, e.g.
#   logging.getLogger("mirrorlab.access").setLevel(logging.WARNING)
logger = logging.getLogger("mirrorlab.access")


@dataclass
class RequestLog:
    """Structured access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so it times everything.

        pipeline.add(LoggingMiddleware(log_format="json", skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[List[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level for access lines.
            skip_paths: Paths not logged, e.g. ["/health"] for CI pollers.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=request.query_string,
            client_ip=request.client_ip or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
