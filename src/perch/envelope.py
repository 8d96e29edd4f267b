"""Response envelopes — the uniform JSON wrapper around every response.

Two shapes form a tagged union:

- ``Envelope`` for success: ``{status, message, data, <custom keys>...}``
- ``ErrorEnvelope`` for failure: ``{status, message, errors?, exception?}``

Controllers return either a plain value (wrapped by the normalizer) or an
``Envelope`` they built themselves to attach top-level metadata::

    return Envelope(channels).with_custom("pager", pager.to_dict())
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

RESERVED_KEYS = frozenset({"status", "message", "data", "errors", "exception"})


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class Envelope:
    """A successful response payload.

    ``data`` is the controller's return value, never re-shaped. ``custom``
    holds extra top-level keys such as ``pager``.
    """

    data: Any = None
    status: int = 200
    message: str = "OK"
    custom: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    headers: tuple[tuple[str, str], ...] = ()

    def with_custom(self, key: str, value: Any) -> "Envelope":
        """Return a new Envelope with an extra top-level key.

        Raises ``ValueError`` if *key* would shadow an envelope field.
        """
        if key in RESERVED_KEYS:
            msg = f"Custom key {key!r} would shadow a reserved envelope field."
            raise ValueError(msg)
        return replace(self, custom=_frozen({**self.custom, key: value}))

    def with_status(self, status: int) -> "Envelope":
        return replace(self, status=status)

    def with_message(self, message: str) -> "Envelope":
        return replace(self, message=message)

    def with_header(self, name: str, value: str) -> "Envelope":
        return replace(self, headers=(*self.headers, (name, value)))

    def to_dict(self, message_key: str = "message") -> dict[str, Any]:
        """Serializable form; ``message_key`` names the message field."""
        payload: dict[str, Any] = {"status": self.status, message_key: self.message, "data": self.data}
        for key, value in self.custom.items():
            if key not in payload:
                payload[key] = value
        return payload


@dataclass(frozen=True, slots=True)
class ErrorEnvelope:
    """A failed response payload, produced only by the exception translator."""

    status: int
    message: str
    headers: tuple[tuple[str, str], ...] = ()
    errors: Mapping[str, list[str]] | None = None
    exception: Mapping[str, Any] | None = None

    def to_dict(self, message_key: str = "message") -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status, message_key: self.message}
        if self.errors:
            payload["errors"] = {name: list(violations) for name, violations in self.errors.items()}
        if self.exception is not None:
            payload["exception"] = dict(self.exception)
        return payload
