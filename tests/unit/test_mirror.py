"""
Unit tests for the request mirror handler.
"""

import json

import pytest

from mirrorlab.handlers.mirror import (
    MirrorHandler,
    mirror_args,
    mirror_headers,
    parse_form,
    parse_json,
    request_url,
    shape_header_name,
)
from mirrorlab.http.request import HTTPRequest

FORM = [("Host", "localhost:3000"), ("Content-Type", "application/x-www-form-urlencoded")]
JSON = [("Host", "localhost:3000"), ("Content-Type", "application/json")]


class TestMirrorPayload:
    """Tests for the full mirror payload."""

    def test_form_body(self, make_request):
        """Test the worked form example: repeated fields keep every value."""
        request = make_request(
            headers=FORM,
            body=b"custname=John+Doe&topping=bacon&topping=cheese",
        )

        payload = MirrorHandler().describe(request)

        assert payload["form"] == {"custname": ["John Doe"], "topping": ["bacon", "cheese"]}
        assert payload["json"] is None
        assert payload["data"] == "custname=John+Doe&topping=bacon&topping=cheese"

    def test_json_body(self, make_request):
        """Test the worked JSON example."""
        request = make_request(headers=JSON, body=b'{"name":"Jane"}')

        payload = MirrorHandler().describe(request)

        assert payload["json"] == {"name": "Jane"}
        assert payload["form"] == {}

    def test_malformed_json(self, make_request):
        """Test that broken JSON becomes null and data stays untouched."""
        request = make_request(headers=JSON, body=b'{"invalid": json}')

        payload = MirrorHandler().describe(request)

        assert payload["json"] is None
        assert payload["data"] == '{"invalid": json}'
        assert payload["form"] == {}

    def test_other_content_type(self, make_request):
        """Test that other content types populate neither form nor json."""
        request = make_request(
            headers=[("Content-Type", "text/plain")],
            body=b"a=1&b=2",
        )

        payload = MirrorHandler().describe(request)

        assert payload["form"] == {}
        assert payload["json"] is None
        assert payload["data"] == "a=1&b=2"

    def test_no_content_type(self, make_request):
        """Test a body sent without any Content-Type."""
        payload = MirrorHandler().describe(make_request(body=b'{"a": 1}'))

        assert payload["json"] is None
        assert payload["form"] == {}
        assert payload["data"] == '{"a": 1}'

    def test_content_type_with_charset(self, make_request):
        """Test that parameters do not break content type detection."""
        request = make_request(
            headers=[("Content-Type", "application/json; charset=utf-8")],
            body=b"[1, 2]",
        )

        assert MirrorHandler().describe(request)["json"] == [1, 2]

    def test_content_type_substring_match(self, make_request):
        """Test that detection is substring based, not exact."""
        request = make_request(
            headers=[("Content-Type", "application/jsonx")],
            body=b"true",
        )

        assert MirrorHandler().describe(request)["json"] is True

    def test_json_null_literal(self, make_request):
        """Test that a literal null body also reports json null."""
        request = make_request(headers=JSON, body=b"null")

        payload = MirrorHandler().describe(request)

        assert payload["json"] is None
        assert payload["data"] == "null"

    def test_key_order(self, make_request):
        """Test the field order of the payload."""
        payload = MirrorHandler().describe(make_request())

        assert list(payload) == [
            "args", "headers", "method", "origin", "url", "data", "files", "form", "json",
        ]

    def test_files_always_empty(self, make_request):
        """Test that multipart bodies are not split into files."""
        request = make_request(
            headers=[("Content-Type", "multipart/form-data; boundary=x")],
            body=b"--x\r\n\r\nvalue\r\n--x--",
        )

        payload = MirrorHandler().describe(request)

        assert payload["files"] == {}
        assert payload["form"] == {}

    def test_origin(self, make_request):
        """Test origin from the peer address."""
        assert MirrorHandler().describe(make_request())["origin"] == "127.0.0.1"
        assert MirrorHandler().describe(make_request(client_address=None))["origin"] == "unknown"

    def test_args_and_url(self, make_request):
        """Test query args and the reconstructed URL."""
        request = make_request(
            target="/post?param1=value1&param1=value2&empty=",
            headers=[("Host", "localhost:3000")],
        )

        payload = MirrorHandler().describe(request)

        assert payload["args"] == {"param1": "value2", "empty": ""}
        assert payload["url"] == "http://localhost:3000/post?param1=value1&param1=value2&empty="
        assert payload["method"] == "POST"

    def test_idempotent(self, make_request):
        """Test that the same request mirrors the same way twice."""
        handler = MirrorHandler()

        first = handler.describe(make_request(headers=FORM, body=b"a=1"))
        second = handler.describe(make_request(headers=FORM, body=b"a=1"))

        assert first == second

    def test_handle_response(self, make_request):
        """Test status, content type and pretty JSON body."""
        response = MirrorHandler()(make_request(headers=JSON, body='{"name": "Zoë"}'.encode()))

        assert response.status == 200
        assert response.headers["Content-Type"] == "application/json"
        assert response.body.startswith(b"{\n  \"args\"")
        assert json.loads(response.body)["json"] == {"name": "Zoë"}
        assert "Zoë" in response.text

    def test_lone_surrogate_in_json(self, make_request):
        """Test that an unpaired \\ud800 escape is mirrored, not a 500."""
        response = MirrorHandler()(make_request(headers=JSON, body=b'{"a": "\\ud800", "b": "\\ud83d\\ude00"}'))

        assert response.status == 200
        assert b'"a": "\\ud800"' in response.body
        payload = json.loads(response.body)
        assert payload["json"] == {"a": "\ud800", "b": "\U0001f600"}
        assert "\U0001f600" in response.text


class TestHeaderShaping:
    """Tests for header name shaping."""

    @pytest.mark.parametrize("raw, shaped", [
        ("content-type", "Content-type"),
        ("Content-Type", "Content-type"),
        ("X-CUSTOM-HEADER", "X-custom-header"),
        ("host", "Host"),
        ("x", "X"),
    ])
    def test_shape_header_name(self, raw: str, shaped: str):
        """Test that only the first character is capitalized."""
        assert shape_header_name(raw) == shaped

    def test_values_are_lists_in_order(self):
        """Test that repeated headers keep every value in order."""
        request = HTTPRequest(
            method="POST",
            target="/post",
            headers=[("X-Tag", "a"), ("Host", "h"), ("x-tag", "b")],
        )

        assert mirror_headers(request) == {"X-tag": ["a", "b"], "Host": ["h"]}


class TestParsingHelpers:
    """Tests for the query, form and JSON helpers."""

    def test_args_last_value_wins(self):
        """Test that a repeated query key keeps its final value."""
        assert mirror_args("a=1&b=2&a=3") == {"a": "3", "b": "2"}

    def test_args_decoding(self):
        """Test percent and plus decoding in query args."""
        assert mirror_args("q=hello%20world&r=a+b") == {"q": "hello world", "r": "a b"}

    def test_args_empty(self):
        """Test an empty query string."""
        assert mirror_args("") == {}

    def test_form_blank_values(self):
        """Test that empty form values are kept."""
        assert parse_form("a=&b=1") == {"a": [""], "b": ["1"]}

    def test_form_decoding(self):
        """Test form value decoding."""
        assert parse_form("comments=No+onions%21") == {"comments": ["No onions!"]}

    @pytest.mark.parametrize("body", ["", "{", "NaN", "[Infinity]", "{'a': 1}"])
    def test_json_rejects_non_json(self, body: str):
        """Test that anything outside strict JSON parses to None."""
        assert parse_json(body) is None

    def test_json_deep_nesting(self):
        """Test that pathological nesting degrades to None."""
        assert parse_json("[" * 100000 + "]" * 100000) is None

    def test_json_scalars(self):
        """Test non-object JSON documents."""
        assert parse_json("42") == 42
        assert parse_json('"text"') == "text"


class TestRequestURL:
    """Tests for URL reconstruction."""

    def test_from_host_header(self):
        """Test the Host header supplies the authority."""
        request = HTTPRequest(method="POST", target="/post?a=1", headers={"Host": "example.com:8080"})

        assert request_url(request) == "http://example.com:8080/post?a=1"

    def test_default_host(self):
        """Test the fallback when Host is missing."""
        request = HTTPRequest(method="POST", target="/post", version="HTTP/1.0")

        assert request_url(request, "localhost:3000") == "http://localhost:3000/post"

    @pytest.mark.parametrize("bound, expected", [
        (("127.0.0.1", 54012), "http://127.0.0.1:54012/post"),
        (("0.0.0.0", 3000), "http://localhost:3000/post"),
        (("::1", 8080, 0, 0), "http://[::1]:8080/post"),
    ])
    def test_server_address_fallback(self, bound, expected):
        """Test that the bound address beats default_host when Host is missing."""
        request = HTTPRequest(method="POST", target="/post", version="HTTP/1.0", server_address=bound)

        assert request_url(request, "localhost:3000") == expected

    def test_host_header_beats_server_address(self):
        """Test that a Host header wins over the bound address."""
        request = HTTPRequest(
            method="POST",
            target="/post",
            headers={"Host": "example.com"},
            server_address=("127.0.0.1", 54012),
        )

        assert request_url(request) == "http://example.com/post"

    def test_absolute_target(self):
        """Test an absolute-form target is used as-is."""
        request = HTTPRequest(method="POST", target="http://proxy.test/post?x=1")

        assert request_url(request) == "http://proxy.test/post?x=1"
