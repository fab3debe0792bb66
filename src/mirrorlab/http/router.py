"""
=============================================================================
HTTP ROUTER
=============================================================================

Maps (method, path) pairs to handler functions.

=============================================================================
EXACT MATCHING
=============================================================================

Routing here is deliberately dumb: a route matches when the request
method equals the registered method AND the request path equals the
registered path, character for character.

    Registered:  POST /post
    ─────────────────────────────────────────────────
    POST /post            → match
    POST /post?x=1        → match (query string is not part of the path)
    POST /post/           → 404   (no trailing-slash folding)
    POST /Post            → 404   (case-sensitive)
    POST /p%6Fst          → 404   (no percent-decoding)
    GET  /post            → 404   (method differs, and there is no 405)

Routes are tried in registration order; the first match wins. Registering
the same (method, path) twice is allowed, the later one is unreachable.

=============================================================================
BODY BUFFERING
=============================================================================

    ┌──────────────┐    match?    ┌────────────────────┐
    │   request    │ ───────────► │ method == POST ?   │
    └──────────────┘              └─────────┬──────────┘
           │ no                       yes   │   no
           ▼                                ▼    └──────► handler(request)
     404 Not Found              read_body() until the stream ends
     (text/plain)                           │
                                            ▼
                                     handler(request)

The body is buffered only for matched POST routes. A request that
matches nothing is answered without touching its body.

=============================================================================
INTERVIEW QUESTIONS ABOUT ROUTING
=============================================================================

Q: "Why not a global route table?"
A: "A module-level registry is shared by every test and every server in
   the process. Building a Router per server and passing it in means a
   test can register a throwaway route without leaking it into the next
   test."

Q: "What's the time complexity of route matching?"
A: "O(R) string comparisons for R routes. With four routes that is
   nothing; a dict keyed on (method, path) would make it O(1) but would
   lose duplicate registrations and their order."

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from .request import HTTPRequest
from .response import HTTPResponse, not_found


Handler = Callable[[HTTPRequest], HTTPResponse]


class Method(str, Enum):
    """The methods a route can be registered for."""

    GET = "GET"
    POST = "POST"


@dataclass(frozen=True)
class Route:
    """
    A registered route.

        Route(method=Method.POST, path="/post", handler=mirror)
    """

    method: Method
    path: str
    handler: Handler


class Router:
    """
    Ordered list of exact-match routes.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()

        @router.get("/")
        def index(request):
            return ok("Hello World!", content_type="text/html")

        router.register("POST", "/post", mirror)

        response = router.handle(request)

    ==========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []

    @property
    def routes(self) -> List[Route]:
        """Registered routes in registration order (a copy)."""
        return list(self._routes)

    def register(self, method: Union[str, Method], path: str, handler: Handler) -> Route:
        """
        Append a route.

        Raises:
            ValueError: If method is not GET or POST.
        """
        try:
            method = Method(method)
        except ValueError:
            raise ValueError(f"Unsupported method for routing: {method!r}") from None

        route = Route(method=method, path=path, handler=handler)
        self._routes.append(route)
        return route

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Decorator registering a GET route."""
        def decorator(handler: Handler) -> Handler:
            self.register(Method.GET, path, handler)
            return handler
        return decorator

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Decorator registering a POST route. The body is buffered first."""
        def decorator(handler: Handler) -> Handler:
            self.register(Method.POST, path, handler)
            return handler
        return decorator

    def match(self, method: str, path: str) -> Optional[Route]:
        """First route with exactly this method and path, else None."""
        for route in self._routes:
            if route.method.value == method and route.path == path:
                return route
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request.

        Matched POST routes see a fully buffered request.body. Unmatched
        requests get 404 text/plain "Not Found".
        """
        route = self.match(request.method, request.path)
        if route is None:
            return not_found()

        if route.method is Method.POST:
            request.read_body()

        return route.handler(request)

    def clear(self) -> None:
        self._routes.clear()

    def describe(self) -> List[str]:
        """Human-readable route list, one "METHOD path" line per route."""
        return [f"{route.method.value:6} {route.path}" for route in self._routes]
