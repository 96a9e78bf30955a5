"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the router like layers of an onion:

    pipeline.add(LoggingMiddleware())   # first added = outermost

        ┌─────────────────────────────────────────┐
        │  LoggingMiddleware                      │
        │  ┌───────────────────────────────────┐  │
        │  │        router.dispatch            │  │
        │  └───────────────────────────────────┘  │
        └─────────────────────────────────────────┘

Request flows inward, response flows back out. Each middleware gets the
request and `next`, and must call next(request) unless it answers itself.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware in the chain, or the final handler
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                # before the handler
                response = next(request)
                # after the handler
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process the request, usually by calling next(request)."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """Chains middleware around a final handler."""

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (runs inside everything added before it)."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build MW1 → MW2 → ... → handler.

        Wraps in reverse order so the first-added middleware ends up
        outermost: reversed([A, B]) gives A(B(handler)).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
