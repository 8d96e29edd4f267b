"""HTTP response with a chainable .with_*() transformation API.

Each transformation returns a new Response. JSON is the default media
type; ``Response.json_body()`` serializes any payload the envelope
normalizer produces.
"""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import enum
import json as json_module
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

JSON_CONTENT_TYPE = "application/json"


def json_default(obj: Any) -> Any:
    """``json.dumps`` hook for the types controllers commonly return."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (uuid.UUID, decimal.Decimal)):
        return str(obj)
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    msg = f"Object of type {type(obj).__name__} is not JSON serializable"
    raise TypeError(msg)


def dumps(payload: Any) -> str:
    """Serialize *payload* to compact JSON, keeping non-ASCII text as-is."""
    return json_module.dumps(payload, default=json_default, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True, slots=True)
class Response:
    """A finished HTTP reply: body, status, media type, extra headers.

    Frozen; the ``with_*`` methods derive modified copies::

        Response.json_body({"ok": True}).with_status(202).with_header("Location", "/jobs/1")
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str = JSON_CONTENT_TYPE
    headers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def json_body(cls, payload: Any, *, status: int = 200) -> Response:
        """Build a JSON response from any serializable payload."""
        return cls(body=dumps(payload), status=status, content_type=JSON_CONTENT_TYPE)

    # -- Derived copies --

    def with_status(self, status: int) -> Response:
        """Copy with *status*."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Copy with one more header; existing headers are kept."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str] | tuple[tuple[str, str], ...]) -> Response:
        """Copy with several more headers, from a mapping or pairs."""
        new = tuple(headers.items()) if isinstance(headers, Mapping) else tuple(headers)
        return replace(self, headers=(*self.headers, *new))

    # -- Inspection --

    def header(self, name: str, default: str | None = None) -> str | None:
        """First header value for *name* (case-insensitive)."""
        lower = name.lower()
        for key, value in self.headers:
            if key.lower() == lower:
                return value
        return default

    @property
    def body_bytes(self) -> bytes:
        """The body encoded as UTF-8 when it is text."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """The body decoded as UTF-8 when it is bytes."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    @property
    def json(self) -> Any:
        """Body parsed as JSON."""
        return json_module.loads(self.body_bytes)
