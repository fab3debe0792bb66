"""
Unit tests for URL routing.
"""

import pytest

from mirrorlab.http.router import Router, Route, Method
from mirrorlab.http.request import HTTPRequest
from mirrorlab.http.response import HTTPResponse, ResponseBuilder, ok


def tagged(tag: str):
    """Handler returning its tag so tests can see which route ran."""
    def handler(request: HTTPRequest) -> HTTPResponse:
        return ok(tag)
    return handler


class TestRouter:
    """Tests for Router class."""

    def test_register_and_match(self):
        """Test exact method and path matching."""
        router = Router()
        route = router.register("GET", "/health", tagged("health"))

        assert isinstance(route, Route)
        assert route.method is Method.GET
        assert router.match("GET", "/health") is route
        assert router.match("POST", "/health") is None
        assert router.match("GET", "/healthz") is None

    def test_unsupported_method_rejected(self):
        """Test that only GET and POST can be registered."""
        router = Router()

        with pytest.raises(ValueError):
            router.register("PUT", "/post", tagged("put"))

    def test_no_trailing_slash_normalization(self):
        """Test that /post/ and /post are different paths."""
        router = Router()
        router.register("POST", "/post", tagged("post"))

        assert router.match("POST", "/post/") is None

    def test_first_registered_wins(self):
        """Test that a duplicate registration is never reached."""
        router = Router()
        router.register("GET", "/", tagged("first"))
        router.register("GET", "/", tagged("second"))

        response = router.handle(HTTPRequest(method="GET", target="/"))

        assert response.text == "first"
        assert len(router.routes) == 2

    def test_query_string_ignored_for_matching(self):
        """Test that the query string is not part of the match."""
        router = Router()
        router.register("POST", "/post", tagged("post"))

        response = router.handle(HTTPRequest(method="POST", target="/post?a=1"))

        assert response.text == "post"

    def test_not_found(self):
        """Test the 404 for an unknown path."""
        router = Router()
        router.register("GET", "/", tagged("root"))

        response = router.handle(HTTPRequest(method="GET", target="/nonexistent"))

        assert response.status == 404
        assert response.content_type == "text/plain"
        assert response.text == "Not Found"

    def test_wrong_method_is_not_found(self):
        """Test that a known path with another method is a plain 404."""
        router = Router()
        router.register("POST", "/post", tagged("post"))

        for method in ("GET", "PUT", "DELETE"):
            response = router.handle(HTTPRequest(method=method, target="/post"))
            assert response.status == 404

    def test_post_body_buffered_before_handler(self):
        """Test that a POST handler sees the full body."""
        router = Router()
        seen = []

        @router.post("/post")
        def capture(request: HTTPRequest) -> HTTPResponse:
            seen.append((request.body, request.body_stream))
            return ok("done")

        request = HTTPRequest(method="POST", target="/post")
        request.body_stream = iter([b"part1-", b"part2"])
        router.handle(request)

        assert seen == [(b"part1-part2", None)]

    def test_get_body_not_read(self):
        """Test that a GET handler runs without buffering the body."""
        router = Router()
        router.get("/")(tagged("root"))

        stream = iter([b"ignored"])
        request = HTTPRequest(method="GET", target="/")
        request.body_stream = stream
        router.handle(request)

        assert request.body == b""
        assert request.body_stream is stream

    def test_unmatched_post_body_not_read(self):
        """Test that a 404 does not buffer the body."""
        router = Router()

        request = HTTPRequest(method="POST", target="/nowhere")
        request.body_stream = iter([b"data"])
        response = router.handle(request)

        assert response.status == 404
        assert request.body == b""

    def test_decorators(self):
        """Test route registration via decorators."""
        router = Router()

        @router.get("/page")
        def page(request):
            return ResponseBuilder().html("<p>page</p>").build()

        @router.post("/submit")
        def submit(request):
            return ok("submitted")

        assert [(r.method, r.path) for r in router.routes] == [
            (Method.GET, "/page"),
            (Method.POST, "/submit"),
        ]
        assert page.__name__ == "page"

    def test_routes_is_a_copy(self):
        """Test that mutating routes does not change the router."""
        router = Router()
        router.register("GET", "/", tagged("root"))

        router.routes.clear()

        assert len(router.routes) == 1

    def test_clear(self):
        """Test resetting the route table."""
        router = Router()
        router.register("GET", "/", tagged("root"))
        router.clear()

        assert router.routes == []
        assert router.handle(HTTPRequest(method="GET", target="/")).status == 404

    def test_describe(self):
        """Test the route listing."""
        router = Router()
        router.register("GET", "/", tagged("root"))
        router.register("POST", "/post", tagged("post"))

        assert router.describe() == ["GET    /", "POST   /post"]

    def test_independent_routers(self):
        """Test that two routers never share routes."""
        first = Router()
        second = Router()
        first.register("GET", "/", tagged("root"))

        assert second.routes == []
