"""
Static pages: the greeting at / and the HTML order form at /forms/post.

The form is read from disk on every request so it can be edited while
the server runs. A missing or unreadable file is a 404, not a 500.
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, TEXT_HTML, not_found, ok


logger = logging.getLogger(__name__)


GREETING = "Hello World!"


def index(request: HTTPRequest) -> HTTPResponse:
    return ok(GREETING, content_type=TEXT_HTML)


class FormPageHandler:
    """Serves one HTML file."""

    def __init__(self, path: str):
        self.path = path

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        try:
            with open(self.path, "rb") as f:
                content = f.read()
        except OSError as e:
            logger.warning(f"Cannot read form page {self.path}: {e}")
            return not_found("File not found")

        return ResponseBuilder().html(content).build()
