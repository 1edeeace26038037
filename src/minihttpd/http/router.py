"""
=============================================================================
URL ROUTER
=============================================================================

Matches a request path against an ordered route table and selects the
handler that will produce the response.

=============================================================================
ROUTE KINDS
=============================================================================

There are only two kinds of pattern, and no wildcards beyond "is a prefix
of":

    EXACT   "/user-agent"   matches "/user-agent" and nothing else
    PREFIX  "/echo/"        matches any path starting with "/echo/";
                            the rest of the path ("abc" in "/echo/abc")
                            is handed to the handler factory

=============================================================================
ORDER MATTERS
=============================================================================

The table is evaluated top-to-bottom and the FIRST match wins. The default
table (see minihttpd.handlers.build_router) is:

    1. EXACT  "/"            → RootHandler()
    2. PREFIX "/echo/"       → EchoHandler(remainder)
    3. EXACT  "/user-agent"  → UserAgentHandler()
    4. PREFIX "/files/"      → FileTransferHandler(remainder)
    5. (no match)            → NotFoundHandler()

Paths are compared raw: no trailing-slash normalization and no
percent-decoding. "/user-agent/" is a 404, and so is "/echo" (no slash).

=============================================================================
HANDLER CONTRACT
=============================================================================

Every handler implements

    handle(request: HTTPRequest, config: ServerConfig) -> HTTPResponse

Expected outcomes (not found, bad method, write failure) are returned as
responses with the matching status code; handlers do not raise for them.
The configuration is passed in explicitly on every call, so handlers hold
no global state.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Type, TypeVar

from .request import HTTPRequest
from .response import HTTPResponse, not_found

if TYPE_CHECKING:
    from ..config import ServerConfig


class RouteHandler(ABC):
    """
    Base class for everything the router can dispatch to.

        class HelloHandler(RouteHandler):
            def handle(self, request, config):
                return ok("hello")
    """

    @abstractmethod
    def handle(self, request: HTTPRequest, config: "ServerConfig") -> HTTPResponse:
        """Produce the response for a matched request."""

    @property
    def name(self) -> str:
        """Handler name for logging."""
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"{self.name}()"


class NotFoundHandler(RouteHandler):
    """Fallback when no route matches: 404 with an empty body."""

    def handle(self, request: HTTPRequest, config: "ServerConfig") -> HTTPResponse:
        return not_found()


# A factory builds a handler for one request. Exact routes call it with no
# arguments; prefix routes pass the remainder of the path.
HandlerFactory = Callable[..., RouteHandler]

F = TypeVar("F", bound=Callable[..., RouteHandler])


class RouteKind(Enum):
    """How a route pattern is compared with the request path."""
    EXACT = "exact"      # path == pattern
    PREFIX = "prefix"    # path.startswith(pattern)


@dataclass(frozen=True)
class Route:
    """
    A (pattern, handler factory) pair.

        Route(pattern="/echo/", kind=RouteKind.PREFIX, factory=EchoHandler)
    """

    pattern: str
    kind: RouteKind
    factory: HandlerFactory
    name: Optional[str] = None

    def matches(self, path: str) -> Optional[str]:
        """
        Compare this route with a path.

        Returns:
            None if the route does not match. Otherwise the remainder of
            the path after the pattern ("" for exact routes).
        """
        if self.kind is RouteKind.EXACT:
            return "" if path == self.pattern else None

        if path.startswith(self.pattern):
            return path[len(self.pattern):]
        return None

    def build_handler(self, remainder: str) -> RouteHandler:
        """Instantiate the handler for one matched request."""
        if self.kind is RouteKind.PREFIX:
            return self.factory(remainder)
        return self.factory()


@dataclass(frozen=True)
class RouteMatch:
    """
    Result of a successful match.

        Pattern: "/files/"   Path: "/files/a.txt"
        → RouteMatch(route=<Route /files/>, remainder="a.txt")
    """
    route: Route
    remainder: str


class Router:
    """
    Ordered route table with first-match-wins dispatch.

        router = Router()
        router.add_exact("/", RootHandler)
        router.add_prefix("/echo/", EchoHandler)

        # or with decorators:
        @router.exact("/user-agent")
        class UserAgentHandler(RouteHandler):
            ...

        handler = router.route("/echo/abc")    # EchoHandler("abc")
        response = handler.handle(request, config)
    """

    def __init__(self, fallback: Optional[Type[RouteHandler]] = None):
        """
        Args:
            fallback: Handler class used when nothing matches.
                      Defaults to NotFoundHandler.
        """
        self._routes: List[Route] = []
        self._fallback = fallback or NotFoundHandler

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        pattern: str,
        factory: HandlerFactory,
        kind: RouteKind = RouteKind.EXACT,
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route to the end of the table.

        Routes added earlier take precedence over routes added later.
        """
        if not pattern.startswith("/"):
            raise ValueError(f"Route pattern must start with '/': {pattern!r}")

        route = Route(pattern=pattern, kind=kind, factory=factory, name=name)
        self._routes.append(route)
        return route

    def add_exact(self, pattern: str, factory: HandlerFactory, name: Optional[str] = None) -> Route:
        """Register an exact-match route."""
        return self.add_route(pattern, factory, RouteKind.EXACT, name)

    def add_prefix(self, pattern: str, factory: HandlerFactory, name: Optional[str] = None) -> Route:
        """Register a prefix-match route; the factory receives the remainder."""
        return self.add_route(pattern, factory, RouteKind.PREFIX, name)

    def exact(self, pattern: str, name: Optional[str] = None) -> Callable[[F], F]:
        """Decorator form of add_exact()."""
        def decorator(factory: F) -> F:
            self.add_exact(pattern, factory, name)
            return factory
        return decorator

    def prefix(self, pattern: str, name: Optional[str] = None) -> Callable[[F], F]:
        """Decorator form of add_prefix()."""
        def decorator(factory: F) -> F:
            self.add_prefix(pattern, factory, name)
            return factory
        return decorator

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching path.

        Returns:
            RouteMatch, or None when no route matches.
        """
        for route in self._routes:
            remainder = route.matches(path)
            if remainder is not None:
                return RouteMatch(route=route, remainder=remainder)
        return None

    def route(self, path: str) -> RouteHandler:
        """
        Select the handler for a path.

        Never fails: a miss yields the fallback (NotFoundHandler).
        """
        match = self.match(path)
        if match is None:
            return self._fallback()
        return match.route.build_handler(match.remainder)

    def handle(self, request: HTTPRequest, config: "ServerConfig") -> HTTPResponse:
        """Route a request and run its handler."""
        return self.route(request.path).handle(request, config)

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes, in evaluation order."""
        return list(self._routes)

    def describe(self) -> List[str]:
        """
        One line per route, for the startup log.

            EXACT   / (root)
            PREFIX  /echo/ (echo)

        Unnamed routes show the handler factory name instead.
        """
        lines = []
        for route in self._routes:
            label = route.name or getattr(route.factory, "__name__", "handler")
            lines.append(f"{route.kind.name:7} {route.pattern} ({label})")
        return lines

    def __len__(self) -> int:
        return len(self._routes)
