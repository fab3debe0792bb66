"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware sits between the server loop and the router and sees every
request and response, matched or not:

    server loop ──► LoggingMiddleware ──► ... ──► Router.handle
                ◄──                   ◄──     ◄──

Each layer receives the request and a `next` callable. It may act before
calling next, after it, or instead of it.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class StampMiddleware(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Stamp", "1")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process the request, normally by calling next(request)."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware around a final handler.

    The first middleware added is the outermost layer: it sees the
    request first and the response last.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the call chain.

        Wrapping goes in reverse so [A, B] around h becomes A → B → h.
        """
        chain = handler
        for layer in self._middleware[::-1]:
            chain = partial(layer, next=chain)
        return chain
