"""Read-only multi-value string mappings for query strings and form bodies.

``MultiDict`` backs both ``Request.query`` and the parsed form body so the
parameter bag can treat every source alike.
"""

from collections.abc import Iterator, Mapping
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs


@runtime_checkable
class MultiValueMapping(Protocol):
    """String mapping with repeated keys: indexing yields the first value,
    ``get_list`` yields every value in arrival order.
    """

    def __getitem__(self, key: str) -> str: ...
    def __contains__(self, key: object) -> bool: ...
    def __iter__(self) -> Iterator[str]: ...
    def __len__(self) -> int: ...
    def get(self, key: str, default: str | None = None) -> str | None: ...
    def get_list(self, key: str) -> list[str]: ...


class MultiDict(Mapping[str, str]):
    """Immutable ``key -> [values]`` mapping exposing the first value by default."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, list[str]] | None = None) -> None:
        self._data: dict[str, list[str]] = {k: list(v) for k, v in (data or {}).items()}

    @classmethod
    def from_query_string(cls, query_string: bytes | str, encoding: str = "latin-1") -> "MultiDict":
        """Parse ``a=1&b=2&b=3``; blank values are kept."""
        if isinstance(query_string, bytes):
            query_string = query_string.decode(encoding)
        return cls(parse_qs(query_string, keep_blank_values=True))

    def __getitem__(self, key: str) -> str:
        values = self._data[key]
        return values[0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._data

    def __iter__(self) -> Iterator[str]:
        yield from self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data!r})"

    def get_list(self, key: str) -> list[str]:
        """Every value for *key*; empty when absent."""
        return [*self._data.get(key, ())]

    def to_dict(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._data.items()}
