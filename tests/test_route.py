"""Tests for perch.routing.route — template parsing and route building."""

import pytest

from perch.errors import ConfigurationError
from perch.routing.route import RouteBuilder, parse_path


def _builder(path: str, name: str = "r") -> RouteBuilder:
    return RouteBuilder(name=name, path=path, segments=parse_path(path))


class TestParsePath:
    def test_static(self) -> None:
        segments = parse_path("/users")
        assert len(segments) == 1
        assert segments[0].value == "users"
        assert segments[0].is_param is False

    def test_colon_param(self) -> None:
        segments = parse_path("/:controller/:id")
        assert [s.param_name for s in segments] == ["controller", "id"]
        assert all(s.param_type == "str" for s in segments)

    def test_braced_param(self) -> None:
        segments = parse_path("/users/{id}")
        assert segments[1].is_param is True
        assert segments[1].param_name == "id"

    def test_typed_param(self) -> None:
        assert parse_path("/users/{id:int}")[1].param_type == "int"

    def test_root(self) -> None:
        assert parse_path("/") == []

    def test_rejects_angle_bracket_param(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_path("/share/<slug>")
        assert "<param>" in str(exc_info.value)

    def test_rejects_unknown_converter(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown converter"):
            parse_path("/users/{id:uuid}")

    def test_rejects_invalid_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid placeholder"):
            parse_path("/users/:1st")

    def test_rejects_duplicate_placeholder(self) -> None:
        with pytest.raises(ConfigurationError, match="appears twice"):
            parse_path("/:id/:id")


class TestRouteBuilder:
    def test_defaults_to_get(self) -> None:
        assert _builder("/a").build().methods == frozenset({"GET"})

    def test_chainable_setters(self) -> None:
        route = (
            _builder("/:controller/:id")
            .set_methods("get", "put")
            .set_requirement("id", r"\d+")
            .set_defaults({"format": "json"})
            .build()
        )
        assert route.methods == frozenset({"GET", "PUT"})
        assert route.requirements == {"id": r"\d+"}
        assert route.defaults == {"format": "json"}

    def test_empty_method_set_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="no allowed methods"):
            _builder("/a").set_methods().build()

    def test_constraint_on_unknown_placeholder_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown placeholder"):
            _builder("/:controller").set_requirement("id", r"\d+").build()

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="invalid requirement"):
            _builder("/:id").set_requirement("id", "[").build()

    def test_requirement_overrides_converter_pattern(self) -> None:
        route = _builder("/{code:int}").set_requirement("code", r"\d{3}").build()
        assert route.match_path("/404") == {"code": "404"}
        assert route.match_path("/4040") is None

    def test_built_route_is_independent_of_builder(self) -> None:
        builder = _builder("/:id").set_requirement("id", r"\d+")
        route = builder.build()
        builder.set_requirement("id", "[a-z]+")
        assert route.requirements == {"id": r"\d+"}

    def test_repr(self) -> None:
        route = _builder("/a", name="alpha").set_methods("POST", "GET").build()
        assert repr(route) == "Route('alpha', '/a', [GET,POST])"
