"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

A middleware sits between the connection and the route handler. It sees
every request before the handler does and every response after:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Request ──────────────────────────────────────────►               │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────────────────┐          │
    │   │ Logging  │───►│  Other   │───►│ router.route(path)   │          │
    │   │    MW    │    │    MW    │    │   .handle(req, cfg)  │          │
    │   └──────────┘    └──────────┘    └──────────────────────┘          │
    │                                                                      │
    │   ◄────────────────────────────────────────────── Response          │
    └─────────────────────────────────────────────────────────────────────┘

Each middleware gets the request and a `next` callable. It can:
    - call next(request) and return (or adjust) the response
    - return a response without calling next (short-circuit)

The server installs no middleware by default; the command-line entry
point adds LoggingMiddleware for the access log.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the final handler: request in, response out.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class TimingHeader(Middleware):
            def __call__(self, request, next):
                response = next(request)      # continue the chain
                response.set_header("X-Handled-By", "minihttpd")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The parsed HTTP request
            next: The rest of the chain (call it to continue)

        Returns:
            HTTP response (from next() or short-circuited)
        """

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added = outermost:

        pipeline.add(LoggingMiddleware())   # sees the request first
        pipeline.add(OtherMiddleware())     # closest to the handler

        handler = pipeline.wrap(final_handler)
        response = handler(request)

    Request flows inward in the order added; the response flows back out
    in reverse.
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """
        Add middleware to the pipeline.

        Returns:
            Self for method chaining
        """
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap a handler with every middleware in the pipeline.

        Given [MW1, MW2, MW3]:

            current = handler
            current = MW3 around current
            current = MW2 around current
            current = MW1 around current   →  MW1 → MW2 → MW3 → handler

        Wrapping in reverse keeps the first-added middleware outermost.
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
        """Close over one middleware and its successor."""
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)
