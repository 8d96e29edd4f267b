"""Case-insensitive, read-only request headers.

Built once from the raw ASGI byte pairs; names are lower-cased and values
decoded as latin-1 at construction so lookups are plain dict hits.
"""

from collections.abc import Iterable, Iterator, Mapping


class Headers(Mapping[str, str]):
    """Read-only, case-insensitive HTTP headers.

    ``headers["Content-Type"]`` returns the first value for the name;
    ``get_list`` returns every value in arrival order.
    """

    __slots__ = ("_data", "_raw")

    def __init__(self, raw: Iterable[tuple[bytes, bytes]] = ()) -> None:
        raw = tuple(raw)
        data: dict[str, list[str]] = {}
        for name, value in raw:
            data.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))
        self._raw = raw
        self._data = data

    @classmethod
    def from_dict(cls, headers: Mapping[str, str]) -> "Headers":
        """Build from a plain ``{name: value}`` mapping (tests, tooling)."""
        return cls((k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items())

    def __getitem__(self, key: str) -> str:
        return self._data[key.lower()][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Headers({ {k: v[0] for k, v in self._data.items()}!r})"

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (empty list when absent)."""
        return list(self._data.get(key.lower(), ()))

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """The original byte pairs, for ASGI round-tripping."""
        return self._raw
