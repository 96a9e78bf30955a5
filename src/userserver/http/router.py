"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to exactly one handler, or to 404.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /users/42                                                      │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTE TABLE (checked top to bottom, first match wins)      │   │
    │   │                                                              │   │
    │   │  1. GET  /users[/]          → list_users                     │   │
    │   │  2. GET  /users/:id [0-9]+  → get_user        ← MATCH        │   │
    │   │  3. POST /users[/]          → create_user                    │   │
    │   │                                                              │   │
    │   │  captures = {"id": "42"}                                     │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   get_user(request)      # request.path_params == {"id": "42"}      │
    │                                                                      │
    │   Nothing matched?  →  404 {"error": "not found"}                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHERS
=============================================================================

A route doesn't know how paths are matched. It holds a PathMatcher, and
every matcher has one capability:

    match(path) -> None               no match
                -> {"name": "value"}  match, with captured variables
                -> {}                 match, nothing captured

PathPattern is the built-in matcher. It compiles a pattern to an anchored
regex:

    PathPattern("/users", trailing_slash=True)
        ^/users/?$

    PathPattern("/users/:id", params={"id": r"\\d+"})
        ^/users/(?P<id>\\d+)$

A :param without a constraint matches one path segment ([^/]+).

New routes are added by appending to the table; dispatch() itself never
changes. Keep more specific routes first: first match wins.

The router never normalizes the request path. "/users//" and "/users/1/"
are not rewritten into something that matches; they fall through to 404.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Dict, List
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)


# Handler: takes a request, returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


class PathMatcher(ABC):
    """A pure predicate-plus-capture over request paths."""

    @abstractmethod
    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Return captured variables if `path` matches, else None."""


class PathPattern(PathMatcher):
    """
    Matcher compiled from a "/segment/:param" pattern.

    Args:
        pattern: e.g. "/users" or "/users/:id"
        params: Optional regex per parameter name, e.g. {"id": r"\\d+"}.
                Unconstrained parameters match one path segment.
        trailing_slash: Also accept the pattern followed by a single "/".
    """

    def __init__(
        self,
        pattern: str,
        params: Optional[Dict[str, str]] = None,
        trailing_slash: bool = False,
    ):
        self.pattern = pattern
        self.trailing_slash = trailing_slash
        self._constraints = dict(params or {})
        self._regex, self.param_names = self._compile(pattern)

        unknown = set(self._constraints) - set(self.param_names)
        if unknown:
            raise ValueError(f"Constraints for unknown parameters: {sorted(unknown)}")

    def _compile(self, pattern: str) -> tuple[re.Pattern, List[str]]:
        """
        "/users/:id"  →  ^/users/(?P<id>\\d+)$   (with params={"id": r"\\d+"})

        Empty segments are skipped, static segments are re.escape()d.
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in pattern.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                name = segment[1:]
                if not name.isidentifier():
                    raise ValueError(f"Invalid parameter name in {pattern!r}: {segment!r}")
                param_names.append(name)
                constraint = self._constraints.get(name, "[^/]+")
                regex_parts.append(f"(?P<{name}>{constraint})")
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # the root pattern "/"
        elif self.trailing_slash:
            regex_parts.append("/?")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    def match(self, path: str) -> Optional[Dict[str, str]]:
        # fullmatch: "$" alone would also accept a trailing "\n"
        m = self._regex.fullmatch(path)
        if m is None:
            return None
        return m.groupdict()

    def __repr__(self) -> str:
        suffix = "[/]" if self.trailing_slash else ""
        return f"PathPattern({self.pattern}{suffix})"


@dataclass
class Route:
    """One row of the route table: (method, matcher, handler)."""

    method: str
    matcher: PathMatcher
    handler: Handler
    name: Optional[str] = None


@dataclass
class RouteMatch:
    """The route that matched plus whatever its matcher captured."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered, first-match-wins route table.

        router = Router()

        router.add("GET", PathPattern("/users", trailing_slash=True), list_users)
        router.add("POST", "/users", create_user)   # str → PathPattern

        response = router.dispatch(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add(
        self,
        method: str,
        matcher,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route to the end of the table.

        Args:
            method: HTTP method, matched case-insensitively.
            matcher: A PathMatcher, or a pattern string for PathPattern.
            handler: Called with the request when this route wins.
            name: Optional label for logs.
        """
        if isinstance(matcher, str):
            matcher = PathPattern(matcher)

        route = Route(
            method=method.upper(),
            matcher=matcher,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        return route

    # =========================================================================
    # MATCHING & DISPATCH
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route whose method and matcher both accept the request."""
        method = method.upper()
        for route in self._routes:
            if route.method != method:
                continue
            params = route.matcher.match(path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and return the handler's response.

        Unmatched requests (unknown path, unsupported method on a known
        path, malformed ids) all get 404.
        """
        found = self.match(request.method, request.path)
        if found is None:
            logger.debug(f"No route for {request.method} {request.path}")
            return not_found()

        request.path_params = found.params
        return found.route.handler(request)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def describe(self) -> List[str]:
        """
        One line per route, in priority order, e.g.

            GET      PathPattern(/users[/]) list_users
        """
        return [f"{route.method:8} {route.matcher!r} {route.name or '-'}" for route in self._routes]
