"""Router with named templates matched in registration order.

Routes are mapped during setup and compiled into an immutable list when
the app freezes. Matching tries each route's anchored regex in the order
the routes were mapped and returns the first whose path and method both
fit.
"""

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from perch.errors import (
    ConfigurationError,
    MethodNotAllowed,
    MissingParameterError,
    RouteNotFound,
)
from perch.routing.route import Route, RouteBuilder, RouteMatch, parse_path


def normalize_path(path: str) -> str:
    """Drop a single trailing slash (``/users/`` -> ``/users``)."""
    if not path:
        return "/"
    if len(path) > 1 and path.endswith("/"):
        return path[:-1]
    return path


class Router:
    """Named routes with constraint-checked placeholders.

    Usage::

        router = Router()
        router.map("resource", "/:controller/:id").set_methods("GET", "PUT", "DELETE")
        router.map("collection", "/:controller").set_methods("POST", "GET")
        router.compile()

        match = router.match("/channels/42", "GET")
        match.params  # {"controller": "channels", "id": "42"}

        router.url_for("resource", {"controller": "channels", "id": 42})
        # "/channels/42"
    """

    __slots__ = ("_builders", "_by_name", "_compiled", "_routes")

    def __init__(self) -> None:
        self._builders: list[RouteBuilder] = []
        self._routes: tuple[Route, ...] = ()
        self._by_name: dict[str, Route] = {}
        self._compiled = False

    def map(self, name: str, path: str) -> RouteBuilder:
        """Register a route skeleton and return its builder.

        Must be called before ``compile()``. Raises ``ConfigurationError``
        if *name* is already mapped.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        if any(b.name == name for b in self._builders):
            msg = f"A route named {name!r} is already mapped."
            raise ConfigurationError(msg)

        builder = RouteBuilder(name=name, path=path, segments=parse_path(path))
        self._builders.append(builder)
        return builder

    def compile(self) -> None:
        """Build every pending route and freeze the router."""
        if self._compiled:
            return
        routes = tuple(builder.build() for builder in self._builders)
        self._routes = routes
        self._by_name = {route.name: route for route in routes}
        self._compiled = True

    @property
    def compiled(self) -> bool:
        return self._compiled

    def __len__(self) -> int:
        return len(self._builders)

    @property
    def routes(self) -> list[Route]:
        """All compiled routes in registration order."""
        return list(self._routes)

    def get(self, name: str) -> Route:
        """Return the compiled route called *name*.

        Raises ``RouteNotFound`` for an unknown name.
        """
        self._check_compiled()
        try:
            return self._by_name[name]
        except KeyError:
            raise RouteNotFound(f"No route named {name!r}") from None

    def match(self, path: str, method: str) -> RouteMatch:
        """Match a request path and method against the compiled routes.

        Returns a ``RouteMatch`` for the first route whose template and
        constraints fit *path* and whose method set contains *method*.
        *path* is the raw request path; captured values come back
        percent-decoded, so ``match(url_for(name, params))`` returns *params*.
        Raises ``MethodNotAllowed`` if some route fits the path but none
        allows the method, and ``RouteNotFound`` if no route fits the path.
        """
        self._check_compiled()
        method = method.upper()
        path = normalize_path(path)
        allowed: set[str] = set()

        for route in self._routes:
            params = route.match_path(path)
            if params is None:
                continue
            if method in route.methods:
                return RouteMatch(route=route, params=params, method=method)
            allowed.update(route.methods)

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise RouteNotFound(f"No route matches {method} {path!r}")

    def url_for(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        *,
        absolute: bool = False,
        base_url: str | None = None,
    ) -> str:
        """Build the path for route *name* from *params*.

        Placeholder values are converted with ``str()`` and percent-encoded.
        Extra entries in *params* are ignored. With ``absolute=True`` the
        path is prefixed with *base_url* (e.g. ``request.base_url``).

        Raises ``RouteNotFound`` for an unknown name, ``MissingParameterError``
        when a placeholder has no value, and ``ConfigurationError`` when
        ``absolute=True`` is requested without a *base_url*.
        """
        route = self.get(name)
        values = params or {}

        parts: list[str] = []
        for segment in route.segments:
            if segment.param_name is None:
                parts.append(segment.value)
                continue
            if segment.param_name in values:
                value = values[segment.param_name]
            elif segment.param_name in route.defaults:
                value = route.defaults[segment.param_name]
            else:
                raise MissingParameterError(name, segment.param_name)
            safe = "/" if segment.param_type == "path" else ""
            parts.append(quote(str(value), safe=safe))

        path = "/" + "/".join(parts)
        if not absolute:
            return path
        if not base_url:
            msg = f"url_for({name!r}, absolute=True) needs a base_url."
            raise ConfigurationError(msg)
        return base_url.rstrip("/") + path

    def _check_compiled(self) -> None:
        if not self._compiled:
            msg = "Router is not compiled. Call compile() before matching."
            raise RuntimeError(msg)
