"""Route definitions, route builders, and match results."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from urllib.parse import unquote

from perch.errors import ConfigurationError
from perch.routing.params import CONVERTERS, convert_param


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route template.

    Static:  ``/users``     (is_param=False)
    Colon:   ``/:id``       (is_param=True, param_name="id")
    Braced:  ``/{id}``      (is_param=True, param_name="id")
    Typed:   ``/{id:int}``  (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


def _param_segment(part: str, inner: str) -> PathSegment:
    if ":" in inner:
        param_name, param_type = inner.split(":", 1)
    else:
        param_name, param_type = inner, "str"
    if not param_name.isidentifier():
        msg = f"Invalid placeholder name {param_name!r} in segment {part!r}."
        raise ConfigurationError(msg)
    if param_type not in CONVERTERS:
        known = ", ".join(sorted(CONVERTERS))
        msg = f"Unknown converter {param_type!r} in segment {part!r}. Known converters: {known}"
        raise ConfigurationError(msg)
    return PathSegment(value=part, is_param=True, param_name=param_name, param_type=param_type)


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route template into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/:controller/:id"   -> [PathSegment(":controller", is_param=True, ...), ...]
        "/users/{id:int}"    -> [PathSegment("users"), PathSegment("{id:int}", ...)]
    """
    if "<" in path and ">" in path:
        msg = (
            f"Route template {path!r} uses <param> placeholders. "
            "Use :param or {param} instead."
        )
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    seen: set[str] = set()
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if part.startswith(":"):
            segment = _param_segment(part, part[1:])
        elif part.startswith("{") and part.endswith("}"):
            segment = _param_segment(part, part[1:-1])
        else:
            segment = PathSegment(value=part)

        if segment.param_name is not None:
            if segment.param_name in seen:
                msg = f"Placeholder {segment.param_name!r} appears twice in {path!r}."
                raise ConfigurationError(msg)
            seen.add(segment.param_name)
        segments.append(segment)
    return segments


@dataclass(frozen=True, slots=True, eq=False)
class Route:
    """A compiled route definition.

    Created from a ``RouteBuilder`` when the router compiles.
    """

    name: str
    path: str
    methods: frozenset[str]
    segments: tuple[PathSegment, ...]
    pattern: re.Pattern[str]
    requirements: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    defaults: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def match_path(self, path: str) -> dict[str, str] | None:
        """Return captured placeholders if *path* fits this template.

        *path* is the raw, still percent-encoded request path, so
        requirements see the segment as sent and an encoded ``%2F`` never
        splits a segment. Captured values are percent-decoded.
        """
        m = self.pattern.fullmatch(path)
        if m is None:
            return None
        captured = {name: unquote(value) for name, value in m.groupdict().items()}
        return {**self.defaults, **captured}

    def __repr__(self) -> str:
        methods = ",".join(sorted(self.methods))
        return f"Route({self.name!r}, {self.path!r}, [{methods}])"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    params: dict[str, str]
    method: str

    @property
    def typed_params(self) -> dict[str, Any]:
        """Params with ``{name:int}``-style placeholders converted."""
        typed: dict[str, Any] = dict(self.params)
        for segment in self.route.segments:
            if segment.param_name is not None and segment.param_name in typed:
                typed[segment.param_name] = convert_param(
                    typed[segment.param_name], segment.param_type
                )
        return typed


def _compile_pattern(segments: list[PathSegment], requirements: Mapping[str, str]) -> re.Pattern[str]:
    parts: list[str] = []
    for segment in segments:
        if segment.param_name is None:
            parts.append(re.escape(segment.value))
            continue
        requirement = requirements.get(segment.param_name)
        pattern = requirement if requirement is not None else CONVERTERS[segment.param_type].pattern
        parts.append(f"(?P<{segment.param_name}>(?:{pattern}))")
    return re.compile("/" + "/".join(parts))


@dataclass(slots=True)
class RouteBuilder:
    """A route being configured. Mutable until the router compiles.

    Returned by ``Router.map()``; every setter returns the builder so calls
    chain::

        router.map("resource", "/:controller/:id") \\
              .set_methods("GET", "PUT", "DELETE") \\
              .set_requirements({"controller": "[a-z0-9_-]+", "id": r"[1-9]\\d*"})
    """

    name: str
    path: str
    segments: list[PathSegment]
    methods: list[str] = field(default_factory=lambda: ["GET"])
    requirements: dict[str, str] = field(default_factory=dict)
    defaults: dict[str, str] = field(default_factory=dict)

    def set_methods(self, *methods: str) -> "RouteBuilder":
        """Replace the allowed HTTP methods."""
        self.methods = [m.upper() for m in methods]
        return self

    def set_requirement(self, param: str, pattern: str) -> "RouteBuilder":
        """Constrain one placeholder with a regex."""
        self.requirements[param] = pattern
        return self

    def set_requirements(self, requirements: Mapping[str, str]) -> "RouteBuilder":
        """Constrain several placeholders at once."""
        self.requirements.update(requirements)
        return self

    def set_defaults(self, defaults: Mapping[str, str]) -> "RouteBuilder":
        """Extra params merged into every match (placeholders win)."""
        self.defaults.update(defaults)
        return self

    def build(self) -> Route:
        """Validate and compile into an immutable ``Route``.

        Raises ``ConfigurationError`` for an empty method set, a constraint
        naming a placeholder the template lacks, or an invalid regex.
        """
        if not self.methods:
            msg = f"Route {self.name!r} has no allowed methods."
            raise ConfigurationError(msg)

        names = {s.param_name for s in self.segments if s.param_name is not None}
        unknown = sorted(set(self.requirements) - names)
        if unknown:
            msg = (
                f"Route {self.name!r} constrains unknown placeholder(s) "
                f"{', '.join(unknown)}; template is {self.path!r}."
            )
            raise ConfigurationError(msg)

        try:
            pattern = _compile_pattern(self.segments, self.requirements)
        except re.error as exc:
            msg = f"Route {self.name!r} has an invalid requirement: {exc}"
            raise ConfigurationError(msg) from exc

        return Route(
            name=self.name,
            path=self.path,
            methods=frozenset(self.methods),
            segments=tuple(self.segments),
            pattern=pattern,
            requirements=MappingProxyType(dict(self.requirements)),
            defaults=MappingProxyType(dict(self.defaults)),
        )
