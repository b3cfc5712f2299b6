"""
Strata Backend: Route Registry
==============================

What:  Maps (method, path pattern) to a controller and the schemas its input
       must satisfy.
How:   Patterns are '/'-separated segments where `{name}` is a parameter.
       Overlapping patterns are rejected at registration, so at most one route
       can ever match a request and resolution does not depend on the order in
       which routes were registered.
Who:   Built once in the lifespan (main.py) from the RouteGroups in
       strata.routes, frozen, then consulted by the Dispatcher per request.

Example:
    users = RouteGroup("/users")

    @users.get("/{user_id}", params=USER_ID_PARAMS_SCHEMA)
    async def get_user(ctx): ...

    registry = RouteRegistry()
    registry.include(users)
    match = registry.resolve("GET", "/users/3f2a…")
    match.params  # {"user_id": "3f2a…"}

Overlap Rule:
    Two patterns overlap when they share a method and a segment count and
    every segment pair is either two equal literals or involves a parameter.
    "/users/{id}" and "/users/me" overlap; "/users/{id}" and "/files/{key}"
    do not.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from strata.exceptions import NotFoundError
from strata.schemas.envelope import HTTP_METHODS, ResultEnvelope
from strata.validation import Schema

logger = logging.getLogger(__name__)

# Controllers receive a dispatch.RequestContext
Handler = Callable[[Any], Awaitable[ResultEnvelope]]

_PARAM_SEGMENT = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


class RouteConflictError(ValueError):
    """Raised at registration when a pattern is ambiguous with an existing one."""


def split_path(path: str) -> Tuple[str, ...]:
    """'/users/{id}/' → ('users', '{id}'). Empty segments are dropped."""
    return tuple(segment for segment in path.split("/") if segment)


def _param_name(segment: str) -> Optional[str]:
    match = _PARAM_SEGMENT.match(segment)
    return match.group(1) if match else None


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    handler: Handler
    body: Optional[Schema] = None
    params: Optional[Schema] = None
    query: Optional[Schema] = None
    status_code: int = 200
    timeout: Optional[float] = None
    name: Optional[str] = None
    segments: Tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self):
        segments = split_path(self.path)
        names = [n for n in map(_param_name, segments) if n is not None]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate path parameter in {self.path!r}")
        for segment in segments:
            if ("{" in segment or "}" in segment) and _param_name(segment) is None:
                raise ValueError(f"Malformed path segment {segment!r} in {self.path!r}")
        object.__setattr__(self, "segments", segments)

    @property
    def param_names(self) -> List[str]:
        return [n for n in map(_param_name, self.segments) if n is not None]

    def overlaps(self, other: "Route") -> bool:
        if self.method != other.method or len(self.segments) != len(other.segments):
            return False
        for mine, theirs in zip(self.segments, other.segments):
            if _param_name(mine) is None and _param_name(theirs) is None and mine != theirs:
                return False
        return True

    def match(self, segments: Tuple[str, ...]) -> Optional[Dict[str, str]]:
        """Path parameters when `segments` fits this pattern, else None."""
        if len(segments) != len(self.segments):
            return None
        params: Dict[str, str] = {}
        for pattern, actual in zip(self.segments, segments):
            name = _param_name(pattern)
            if name is not None:
                params[name] = actual
            elif pattern != actual:
                return None
        return params


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    params: Dict[str, str]


class RouteGroup:
    """
    Collects routes under a common prefix, like FastAPI's APIRouter.

    The decorators only record the route; nothing is validated for overlap
    until the group is included in a RouteRegistry.
    """

    def __init__(self, prefix: str = "", name: Optional[str] = None):
        segments = split_path(prefix)
        self.prefix = "/" + "/".join(segments) if segments else ""
        self.name = name
        self.routes: List[Dict[str, Any]] = []

    def route(self, method: str, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.routes.append(
                {"method": method, "path": self.prefix + path, "handler": handler, **options}
            )
            return handler

        return decorator

    def get(self, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        return self.route("GET", path, **options)

    def post(self, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        return self.route("POST", path, **options)

    def put(self, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        return self.route("PUT", path, **options)

    def patch(self, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        return self.route("PATCH", path, **options)

    def delete(self, path: str = "", **options: Any) -> Callable[[Handler], Handler]:
        return self.route("DELETE", path, **options)


class RouteRegistry:
    """Registered routes. Read-only once frozen."""

    def __init__(self):
        self._routes: List[Route] = []
        self._frozen = False

    def register(
        self,
        method: str,
        path: str,
        handler: Handler,
        *,
        body: Optional[Schema] = None,
        params: Optional[Schema] = None,
        query: Optional[Schema] = None,
        status_code: int = 200,
        timeout: Optional[float] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Add a route.

        Raises:
            RuntimeError:       the registry is frozen
            ValueError:         unknown method, malformed pattern, or a params
                                schema that does not match the pattern's names
            RouteConflictError: the pattern overlaps an existing route
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register {method} {path}: route registry is frozen")

        method = method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")

        route = Route(
            method=method,
            path=path,
            handler=handler,
            body=body,
            params=params,
            query=query,
            status_code=status_code,
            timeout=timeout,
            name=name or getattr(handler, "__name__", None),
        )

        if params is not None and set(params.fields) != set(route.param_names):
            raise ValueError(
                f"Params schema {params.name} declares {sorted(params.fields)} "
                f"but {path!r} has {sorted(route.param_names)}"
            )

        for existing in self._routes:
            if route.overlaps(existing):
                raise RouteConflictError(
                    f"{method} {path} overlaps {existing.method} {existing.path}"
                )

        self._routes.append(route)
        logger.debug("Registered route %s %s → %s", method, path, route.name)
        return route

    def include(self, group: RouteGroup) -> None:
        for options in group.routes:
            options = dict(options)
            self.register(options.pop("method"), options.pop("path"), options.pop("handler"), **options)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, method: str, path: str) -> RouteMatch:
        """
        Find the route for a request.

        HEAD falls back to the GET route when no HEAD route is registered.

        Raises:
            NotFoundError: no route has this method and a matching pattern
        """
        method = method.upper()
        segments = split_path(path)
        candidates = (method, "GET") if method == "HEAD" else (method,)
        for wanted in candidates:
            for route in self._routes:
                if route.method != wanted:
                    continue
                params = route.match(segments)
                if params is not None:
                    return RouteMatch(route=route, params=params)

        raise NotFoundError(resource="route", context={"method": method, "path": path})

    def __iter__(self) -> Iterator[Route]:
        return iter(list(self._routes))

    def __len__(self) -> int:
        return len(self._routes)
