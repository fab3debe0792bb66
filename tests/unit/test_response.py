"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

from mirrorlab.http.response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    ok,
    not_found,
    error_response,
    internal_error,
)
from mirrorlab.http.status_codes import HTTPStatus, reason_phrase


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_default_response(self):
        """Test default response values."""
        response = HTTPResponse()

        assert response.status == 200
        assert response.headers == {}
        assert response.body == b""
        assert response.status_line == "HTTP/1.1 200 OK"

    def test_to_bytes(self):
        """Test serialization of status line, headers and body."""
        response = HTTPResponse(
            status=HTTPStatus.NOT_FOUND,
            headers={"Content-Type": "text/plain"},
            body=b"Not Found",
        )

        raw = response.to_bytes("test/1.0")
        head, _, body = raw.partition(b"\r\n\r\n")
        lines = head.decode().split("\r\n")

        assert lines[0] == "HTTP/1.1 404 Not Found"
        assert "Content-Type: text/plain" in lines
        assert "Content-Length: 9" in lines
        assert "Server: test/1.0" in lines
        assert any(line.startswith("Date: ") for line in lines)
        assert body == b"Not Found"

    def test_to_bytes_keeps_explicit_headers(self):
        """Test that handler-set Content-Length and Server are not replaced."""
        response = HTTPResponse(headers={"Server": "custom", "Content-Length": "0"})

        raw = response.to_bytes()

        assert b"Server: custom\r\n" in raw
        assert raw.count(b"Server:") == 1
        assert raw.count(b"Content-Length:") == 1

    def test_content_length_counts_bytes(self):
        """Test Content-Length for a non-ASCII body."""
        response = ok("café")

        assert b"Content-Length: 5\r\n" in response.to_bytes()

    def test_json_helper(self):
        """Test decoding a JSON body."""
        response = HTTPResponse(body=b'{"a": 1}')

        assert response.json() == {"a": 1}


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_json_body(self):
        """Test compact JSON body."""
        response = ResponseBuilder().json({"key": "value"}).build()

        assert response.content_type == "application/json"
        assert response.body == b'{"key": "value"}'

    def test_json_pretty(self):
        """Test pretty-printed JSON with two-space indent."""
        response = ResponseBuilder().json({"key": [1]}, pretty=True).build()

        assert response.text == '{\n  "key": [\n    1\n  ]\n}'

    def test_json_keeps_unicode(self):
        """Test that non-ASCII text is not escaped."""
        response = ResponseBuilder().json({"name": "Zoë"}).build()

        assert "Zoë" in response.text

    def test_html_body(self):
        """Test HTML body and content type."""
        response = ResponseBuilder().html("<h1>Hi</h1>").build()

        assert response.content_type == "text/html"
        assert response.body == b"<h1>Hi</h1>"

    def test_text_body(self):
        """Test plain-text body and content type."""
        response = ResponseBuilder().text("hello").build()

        assert response.content_type == "text/plain"
        assert response.text == "hello"

    def test_chaining(self):
        """Test that every builder method chains."""
        response = (ResponseBuilder()
            .status(HTTPStatus.BAD_REQUEST)
            .header("X-Custom", "1")
            .no_store()
            .close_connection()
            .text("bad")
            .build())

        assert response.status == 400
        assert response.headers["X-Custom"] == "1"
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["Connection"] == "close"


class TestConvenienceFunctions:
    """Tests for response shortcut functions."""

    def test_ok_with_text(self):
        """Test ok() with a string body."""
        response = ok("Hello World!", content_type="text/html")

        assert response.status == 200
        assert response.content_type == "text/html"
        assert response.text == "Hello World!"

    def test_ok_with_dict(self):
        """Test ok() with a dict becomes pretty JSON."""
        response = ok({"status": "healthy"})

        assert response.content_type == "application/json"
        assert json.loads(response.body) == {"status": "healthy"}
        assert b"\n" in response.body

    def test_not_found(self):
        """Test the plain-text 404."""
        response = not_found()

        assert response.status == 404
        assert response.content_type == "text/plain"
        assert response.text == "Not Found"

    def test_error_response(self):
        """Test JSON error bodies."""
        response = error_response(HTTPStatus.BAD_REQUEST, "Invalid request line")

        assert response.status == 400
        assert response.json() == {"error": "Invalid request line"}

    def test_internal_error(self):
        """Test the default 500 body."""
        response = internal_error()

        assert response.status == 500
        assert response.json() == {"error": "Internal Server Error"}


class TestStatusCodes:
    """Tests for status code helpers."""

    def test_phrases(self):
        """Test reason phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE.phrase == "Request Header Fields Too Large"
        assert reason_phrase(505) == "HTTP Version Not Supported"

    def test_unknown_code(self):
        """Test that unknown codes still get a phrase."""
        assert reason_phrase(299) == "Unknown"

    def test_categories(self):
        """Test success and error classification."""
        assert HTTPStatus.OK.is_success
        assert not HTTPStatus.OK.is_error
        assert HTTPStatus.NOT_FOUND.is_error
        assert HTTPStatus.SERVICE_UNAVAILABLE.is_error


class TestHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        """Test RFC 7231 date format."""
        dt = datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Mon, 19 Oct 2026 10:00:00 GMT"
