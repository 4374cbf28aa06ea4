"""Static route table for the gateway.

Routes are declared once as data and validated when the table is built.
A malformed pattern, an unknown service or a duplicate (method, pattern)
pair raises ``RouteConfigError`` so the gateway refuses to start.

Patterns are split on ``/``; every segment is either a literal or a single
``:name`` parameter. Lookup walks the routes in registration order and the
first match wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import unquote

from core.config.settings import Settings

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


class RouteConfigError(ValueError):
    """Raised when the route table is invalid."""


@dataclass(frozen=True)
class ServiceTarget:
    """A backend the gateway forwards to."""

    name: str
    base_url: str
    timeout: float = 30.0


@dataclass(frozen=True)
class Route:
    """A (method, pattern) -> (service, auth requirement, rewrite) mapping."""

    method: str
    pattern: str
    service: str
    auth_required: bool = True
    strip_prefix: str = ""

    def rewrite(self, path: str) -> str:
        """Apply the rewrite rule: drop ``strip_prefix`` when configured."""
        if self.strip_prefix and path.startswith(self.strip_prefix):
            return path[len(self.strip_prefix):] or "/"
        return path


@dataclass(frozen=True)
class RouteMatch:
    """Result of a successful lookup."""

    route: Route
    target: ServiceTarget
    params: dict[str, str] = field(default_factory=dict)


def _split(path: str) -> list[str]:
    if path != "/" and path.endswith("/"):
        path = path[:-1]
    return path.split("/")[1:] if path != "/" else []


def parse_pattern(pattern: str) -> tuple[str, ...]:
    """Validate a pattern and return its segments.

    Raises:
        RouteConfigError: If the pattern is malformed.
    """
    if not pattern.startswith("/"):
        raise RouteConfigError(f"Pattern {pattern!r} must start with '/'")
    if pattern == "/":
        return ()

    segments = pattern.split("/")[1:]
    seen: set[str] = set()
    for segment in segments:
        if not segment:
            raise RouteConfigError(f"Pattern {pattern!r} has an empty segment")
        if segment.startswith(":"):
            name = segment[1:]
            if not name.isidentifier():
                raise RouteConfigError(
                    f"Pattern {pattern!r} has an invalid parameter name {name!r}"
                )
            if name in seen:
                raise RouteConfigError(
                    f"Pattern {pattern!r} repeats parameter {name!r}"
                )
            seen.add(name)
    return tuple(segments)


def _shape(segments: tuple[str, ...]) -> tuple[str, ...]:
    # parameter names do not make two patterns different
    return tuple(":" if s.startswith(":") else s.lower() for s in segments)


class RouteTable:
    """Immutable, validated lookup table from (method, path) to a route."""

    def __init__(self, routes: Iterable[Route], targets: Iterable[ServiceTarget]):
        self._targets: dict[str, ServiceTarget] = {}
        for target in targets:
            if target.name in self._targets:
                raise RouteConfigError(f"Service {target.name!r} is defined twice")
            self._targets[target.name] = target

        compiled: list[tuple[Route, tuple[str, ...]]] = []
        seen: set[tuple[str, tuple[str, ...]]] = set()
        for route in routes:
            if route.method not in ALLOWED_METHODS:
                raise RouteConfigError(
                    f"Route {route.pattern!r} has unsupported method {route.method!r}"
                )
            if route.service not in self._targets:
                raise RouteConfigError(
                    f"Route {route.method} {route.pattern} targets unknown service "
                    f"{route.service!r}"
                )
            segments = parse_pattern(route.pattern)
            key = (route.method, _shape(segments))
            if key in seen:
                raise RouteConfigError(
                    f"Duplicate route {route.method} {route.pattern}"
                )
            seen.add(key)
            compiled.append((route, segments))

        self._routes: tuple[tuple[Route, tuple[str, ...]], ...] = tuple(compiled)

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(route for route, _ in self._routes)

    def target(self, name: str) -> ServiceTarget:
        return self._targets[name]

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Find the first route matching ``method`` and ``path``.

        HEAD requests are served by GET routes. Literal segments compare
        case-insensitively and one trailing slash is ignored.

        Returns:
            The match, or None when no route applies.
        """
        method = method.upper()
        lookup_method = "GET" if method == "HEAD" else method
        parts = _split(path)

        for route, segments in self._routes:
            if route.method != lookup_method or len(segments) != len(parts):
                continue
            params = _match_segments(segments, parts)
            if params is not None:
                return RouteMatch(
                    route=route,
                    target=self._targets[route.service],
                    params=params,
                )
        return None


def _match_segments(
    segments: tuple[str, ...],
    parts: list[str],
) -> Optional[dict[str, str]]:
    params: dict[str, str] = {}
    for segment, part in zip(segments, parts):
        if segment.startswith(":"):
            if not part:
                return None
            params[segment[1:]] = unquote(part)
        elif segment.lower() != part.lower():
            return None
    return params


def _routes(service: str, auth_required: bool, *entries: tuple[str, str]) -> list[Route]:
    return [
        Route(method=method, pattern=pattern, service=service, auth_required=auth_required)
        for method, pattern in entries
    ]


GATEWAY_ROUTES: tuple[Route, ...] = tuple(
    # Auth: public account endpoints
    _routes(
        "auth",
        False,
        ("POST", "/auth/register"),
        ("POST", "/auth/login"),
        ("POST", "/auth/google"),
        ("POST", "/auth/refresh"),
    )
    # Auth: profile and user administration
    + _routes(
        "auth",
        True,
        ("GET", "/auth/users/me"),
        ("PUT", "/auth/users/me"),
        ("POST", "/auth/users"),
        ("GET", "/auth/users"),
        ("GET", "/auth/users/:id"),
        ("PUT", "/auth/users/:id"),
    )
    # Forum
    + _routes("forum", True, ("POST", "/forum/posts"))
    + _routes(
        "forum",
        False,
        ("GET", "/forum/posts/:post_id"),
        ("GET", "/forum/posts"),
    )
    + _routes(
        "forum",
        True,
        ("PUT", "/forum/posts/:post_id"),
        ("DELETE", "/forum/posts/:post_id"),
        ("POST", "/forum/posts/:post_id/comments"),
    )
    + _routes("forum", False, ("GET", "/forum/posts/:post_id/comments"))
    + _routes(
        "forum",
        True,
        ("PUT", "/forum/posts/:post_id/comments/:comment_id"),
        ("DELETE", "/forum/posts/:post_id/comments/:comment_id"),
    )
    # Assistant
    + _routes(
        "assistant",
        True,
        ("POST", "/assistant/chats"),
        ("GET", "/assistant/chats"),
        ("GET", "/assistant/chats/:chat_id/messages"),
        ("POST", "/assistant/chats/:chat_id/messages"),
        ("PUT", "/assistant/chats/:chat_id"),
        ("DELETE", "/assistant/chats/:chat_id"),
    )
    # Documents / RAG
    + _routes(
        "rag",
        True,
        ("POST", "/rag/documents"),
        ("GET", "/rag/documents"),
        ("DELETE", "/rag/documents"),
    )
)


def build_service_targets(settings: Settings) -> tuple[ServiceTarget, ...]:
    """Service targets with URLs and forward timeouts taken from settings."""
    return (
        ServiceTarget("auth", settings.auth_service_url, settings.forward_timeout),
        ServiceTarget("forum", settings.forum_service_url, settings.forward_timeout),
        ServiceTarget(
            "assistant",
            settings.assistant_service_url,
            settings.assistant_forward_timeout,
        ),
        ServiceTarget("rag", settings.rag_service_url, settings.rag_forward_timeout),
    )


def build_route_table(settings: Settings) -> RouteTable:
    """Build the gateway route table.

    Raises:
        RouteConfigError: If the table is invalid.
    """
    table = RouteTable(GATEWAY_ROUTES, build_service_targets(settings))
    logger.info(f"Route table built with {len(table)} routes")
    return table
