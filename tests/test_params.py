"""Tests for perch.params and perch.routing.params — converters, parameter bag, pager."""

import pytest

from perch.config import AppConfig
from perch.errors import BadRequest
from perch.http.multidict import MultiDict
from perch.params import Pager, ParameterBag
from perch.routing.params import CONVERTERS, convert_param


class TestConverters:
    def test_int(self) -> None:
        assert convert_param("42", "int") == 42

    def test_float(self) -> None:
        assert convert_param("4.5", "float") == 4.5

    def test_str_and_path(self) -> None:
        assert convert_param("a", "str") == "a"
        assert convert_param("a/b", "path") == "a/b"

    def test_invalid_int(self) -> None:
        with pytest.raises(ValueError):
            convert_param("abc", "int")

    def test_unknown_converter(self) -> None:
        with pytest.raises(KeyError):
            convert_param("x", "uuid")

    def test_known_converters(self) -> None:
        assert set(CONVERTERS) == {"str", "int", "float", "path"}


class TestParameterBag:
    def test_route_beats_body_beats_query(self) -> None:
        bag = ParameterBag(
            route={"id": "1"},
            body={"id": "2", "name": "body"},
            query=MultiDict({"id": ["3"], "name": ["query"], "page": ["4"]}),
        )
        assert bag["id"] == "1"
        assert bag["name"] == "body"
        assert bag["page"] == "4"

    def test_get_with_default(self) -> None:
        bag = ParameterBag()
        assert bag.get("missing") is None
        assert bag.get("missing", "x") == "x"

    def test_iteration_deduplicates(self) -> None:
        bag = ParameterBag(route={"id": "1"}, query=MultiDict({"id": ["2"], "q": ["x"]}))
        assert list(bag) == ["id", "q"]
        assert len(bag) == 2
        assert "q" in bag

    def test_get_int(self) -> None:
        bag = ParameterBag(route={"id": "42"}, body={"count": 3})
        assert bag.get_int("id") == 42
        assert bag.get_int("count") == 3
        assert bag.get_int("missing", 7) == 7

    def test_get_int_invalid_is_bad_request(self) -> None:
        bag = ParameterBag(query=MultiDict({"limit": ["ten"]}))
        with pytest.raises(BadRequest) as exc_info:
            bag.get_int("limit")
        assert exc_info.value.errors == {"limit": ["must be an integer"]}

    def test_get_int_rejects_bool(self) -> None:
        with pytest.raises(BadRequest):
            ParameterBag(body={"flag": True}).get_int("flag")

    def test_get_int_beyond_digit_limit(self) -> None:
        bag = ParameterBag(route={"id": "1" + "0" * 5000, "neg": "-" + "9" * 4500})
        assert bag.get_int("id") == 10**5000
        assert bag.get_int("neg") == -(10**4500 - 1)

    def test_get_int_long_garbage_is_bad_request(self) -> None:
        with pytest.raises(BadRequest):
            ParameterBag(route={"id": "1" * 5000 + "x"}).get_int("id")

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("yes", True), ("off", False), ("", False)])
    def test_get_bool(self, raw: str, expected: bool) -> None:
        assert ParameterBag(query=MultiDict({"flag": [raw]})).get_bool("flag") is expected

    def test_get_bool_default_and_invalid(self) -> None:
        assert ParameterBag().get_bool("flag", True) is True
        with pytest.raises(BadRequest):
            ParameterBag(query=MultiDict({"flag": ["maybe"]})).get_bool("flag")

    def test_get_list(self) -> None:
        bag = ParameterBag(body={"tags": ["a", "b"]}, query=MultiDict({"ids": ["1", "2"]}))
        assert bag.get_list("tags") == ["a", "b"]
        assert bag.get_list("ids") == ["1", "2"]
        assert bag.get_list("missing") == []

    def test_get_str(self) -> None:
        bag = ParameterBag(body={"n": 5})
        assert bag.get_str("n") == "5"
        assert bag.get_str("missing", "x") == "x"

    def test_sources_exposed(self) -> None:
        query = MultiDict({"q": ["x"]})
        bag = ParameterBag(route={"id": "1"}, query=query)
        assert bag.route == {"id": "1"}
        assert bag.query is query
        assert bag.body == {}


class TestPager:
    def test_defaults_from_config(self) -> None:
        pager = Pager.from_params(ParameterBag(), AppConfig(default_limit=10, default_order_by="name"))
        assert pager == Pager(offset=0, limit=10, order_by="name", direction="ASC")

    def test_reads_query(self) -> None:
        query = MultiDict({"offset": ["20"], "limit": ["5"], "order_by": ["name"], "direction": ["desc"]})
        pager = Pager.from_params(ParameterBag(query=query))
        assert pager == Pager(offset=20, limit=5, order_by="name", direction="DESC")

    def test_invalid_values_collected(self) -> None:
        query = MultiDict({"offset": ["-1"], "limit": ["1000"], "direction": ["sideways"]})
        with pytest.raises(BadRequest) as exc_info:
            Pager.from_params(ParameterBag(query=query))
        assert set(exc_info.value.errors) == {"offset", "limit", "direction"}

    def test_to_dict(self) -> None:
        assert Pager(offset=0, limit=30).to_dict(total=3) == {"offset": 0, "limit": 30, "total": 3}
