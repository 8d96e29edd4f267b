"""Parameter bag — one read-only view over route, body, and query params.

Lookup precedence is route, then body, then query: a placeholder captured
from the path can never be overridden by a form field or query string.
Typed accessors take a caller default for absent keys and raise
``BadRequest`` for values present but malformed, so controllers never
see a half-parsed parameter.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from perch.config import AppConfig
from perch.errors import BadRequest
from perch.http.multidict import MultiValueMapping

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})

DIRECTIONS = ("ASC", "DESC")

_MISSING = object()

# Decimal strings longer than this are converted in pieces of this size.
_DIGIT_CHUNK = 1000


class ParameterBag(Mapping[str, Any]):
    """Read-only parameters for one request.

    Usage::

        bag = ParameterBag(route={"id": "42"}, query=request.query)
        bag.get_int("id")            # 42
        bag.get_int("limit", 30)     # 30 when absent
        bag.get_bool("active", True)
    """

    __slots__ = ("_body", "_query", "_route")

    def __init__(
        self,
        route: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> None:
        self._route: Mapping[str, Any] = dict(route or {})
        self._body: Mapping[str, Any] = body if body is not None else {}
        self._query: Mapping[str, Any] = query if query is not None else {}

    # -- Sources --

    @property
    def route(self) -> Mapping[str, Any]:
        return self._route

    @property
    def body(self) -> Mapping[str, Any]:
        return self._body

    @property
    def query(self) -> Mapping[str, Any]:
        return self._query

    def _sources(self) -> tuple[Mapping[str, Any], ...]:
        return (self._route, self._body, self._query)

    # -- Mapping protocol --

    def __getitem__(self, key: str) -> Any:
        for source in self._sources():
            if key in source:
                return source[key]
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return any(key in source for source in self._sources())

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for source in self._sources():
            for key in source:
                if key not in seen:
                    seen.add(key)
                    yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"ParameterBag(route={dict(self._route)!r}, body={dict(self._body)!r}, query={dict(self._query)!r})"

    # -- Typed accessors --

    def get_str(self, key: str, default: str | None = None) -> str | None:
        value = self.get(key, _MISSING)
        if value is _MISSING or value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Value as ``int``; ``BadRequest`` if present but not an integer."""
        value = self.get(key, _MISSING)
        if value is _MISSING or value is None:
            return default
        if isinstance(value, bool):
            raise _invalid(key, "must be an integer")
        if isinstance(value, int):
            return value
        try:
            return _parse_int(str(value).strip())
        except ValueError:
            raise _invalid(key, "must be an integer") from None

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        """Value as ``bool`` (``1/true/yes/on`` and ``0/false/no/off``)."""
        value = self.get(key, _MISSING)
        if value is _MISSING or value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise _invalid(key, "must be a boolean")

    def get_list(self, key: str) -> list[Any]:
        """All values for *key* from the first source that has it."""
        for source in self._sources():
            if key not in source:
                continue
            if isinstance(source, MultiValueMapping):
                return source.get_list(key)
            value = source[key]
            return list(value) if isinstance(value, list) else [value]
        return []


def _parse_int(text: str) -> int:
    """``int(text)`` without the interpreter's digit limit.

    Long plain decimal strings are converted chunk by chunk, so they never
    reach ``sys.get_int_max_str_digits()``. Anything else goes through
    ``int()`` as is.
    """
    digits = text[1:] if text[:1] in ("+", "-") else text
    if len(digits) <= _DIGIT_CHUNK or not (digits.isascii() and digits.isdigit()):
        return int(text)
    result = 0
    for start in range(0, len(digits), _DIGIT_CHUNK):
        chunk = digits[start : start + _DIGIT_CHUNK]
        result = result * 10 ** len(chunk) + int(chunk)
    return -result if text.startswith("-") else result


def _invalid(key: str, violation: str) -> BadRequest:
    return BadRequest(f"Invalid parameter {key!r}", {key: [violation]})


@dataclass(frozen=True, slots=True)
class Pager:
    """Offset pagination read from ``offset``/``limit``/``order_by``/``direction``.

    Defaults come from ``AppConfig``. Attach it to a listing response with
    ``envelope.with_custom("pager", pager.to_dict(total))``.
    """

    offset: int = 0
    limit: int = 30
    order_by: str = "id"
    direction: str = "ASC"

    @classmethod
    def from_params(cls, params: ParameterBag, config: AppConfig | None = None) -> "Pager":
        """Read and validate pagination params.

        Raises ``BadRequest`` (with field errors) for a negative offset, a
        limit outside ``1..max_limit``, or an unknown direction.
        """
        config = config or AppConfig()
        offset = params.get_int("offset", 0)
        limit = params.get_int("limit", config.default_limit)
        order_by = params.get_str("order_by", config.default_order_by) or config.default_order_by
        direction = (params.get_str("direction", config.default_direction) or "").upper()

        errors: dict[str, list[str]] = {}
        if offset < 0:
            errors["offset"] = ["must be zero or greater"]
        if not 1 <= limit <= config.max_limit:
            errors["limit"] = [f"must be between 1 and {config.max_limit}"]
        if direction not in DIRECTIONS:
            errors["direction"] = [f"must be one of {', '.join(DIRECTIONS)}"]
        if errors:
            raise BadRequest("Invalid pagination parameters", errors)

        return cls(offset=offset, limit=limit, order_by=order_by, direction=direction)

    def to_dict(self, total: int) -> dict[str, int]:
        """The ``pager`` block: ``{offset, limit, total}``."""
        return {"offset": self.offset, "limit": self.limit, "total": total}
