"""The request object every controller sees.

Method, path, headers, and query are fixed when the ASGI scope arrives.
The body is pulled lazily from ASGI ``receive``, bounded by
``max_content_length``, and decoded as JSON or form data on demand.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.errors import BadRequest, HTTPError
from perch.http.forms import FORM_CONTENT_TYPES, FormData, media_type, parse_form_data
from perch.http.headers import Headers
from perch.http.multidict import MultiDict


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


def _too_large() -> HTTPError:
    return HTTPError(status=413, detail="Request body too large")


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, query) is frozen at creation. The body
    is read once through ``body()`` and cached; ``json()`` and ``form()``
    parse from that cache.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: MultiDict = field(default_factory=MultiDict)
    scheme: str = "http"
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    root_path: str = ""
    raw_path: str = ""  # Percent-encoded path as sent; empty when unknown
    trust_proxy: bool = False
    max_content_length: int | None = None

    # ASGI receive callable; consumed once by body()
    _receive: Receive = field(default=_empty_receive, repr=False, compare=False)

    # Raw body, decoded JSON, parsed form, and the raw query string
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def host(self) -> str:
        """Host (with port when non-default), honouring proxies if trusted."""
        if self.trust_proxy:
            forwarded = self.headers.get("x-forwarded-host")
            if forwarded:
                return forwarded.split(",")[0].strip()
        host = self.headers.get("host")
        if host:
            return host
        if self.server is None:
            return "localhost"
        name, port = self.server
        default_port = 443 if self.url_scheme == "https" else 80
        return name if port == default_port else f"{name}:{port}"

    @property
    def url_scheme(self) -> str:
        """``http`` or ``https``, honouring ``X-Forwarded-Proto`` if trusted."""
        if self.trust_proxy:
            forwarded = self.headers.get("x-forwarded-proto")
            if forwarded:
                return forwarded.split(",")[0].strip().lower()
        return self.scheme

    @property
    def base_url(self) -> str:
        """``scheme://host[:port]/root_path`` without a trailing slash."""
        return f"{self.url_scheme}://{self.host}{self.root_path}".rstrip("/")

    @property
    def url(self) -> str:
        """Full request URL (path + query string)."""
        qs = self._cache.get("_query_string", b"")
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    # -- Async body access --

    async def body(self) -> bytes:
        """The complete body, read once and cached.

        A declared ``Content-Length`` over ``max_content_length`` is refused
        before reading; a streamed body is refused as soon as it passes the
        limit. Both raise a 413 ``HTTPError``.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        limit = self.max_content_length
        declared = self.content_length
        if limit is not None and declared is not None and declared > limit:
            raise _too_large()

        chunks: list[bytes] = []
        size = 0
        async for chunk in self.stream():
            size += len(chunk)
            if limit is not None and size > limit:
                raise _too_large()
            chunks.append(chunk)
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Yield body chunks as ASGI delivers them, unbuffered and unbounded."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON.

        Raises ``BadRequest`` for a body that is not valid JSON.
        """
        if "_json" in self._cache:
            return self._cache["_json"]
        raw = await self.body()
        try:
            result = json_module.loads(raw) if raw else None
        except (UnicodeDecodeError, ValueError) as exc:
            raise BadRequest("Malformed JSON body") from exc
        self._cache["_json"] = result
        return result

    async def form(self) -> FormData:
        """URL-encoded or multipart fields, cached after the first call.

        Any other content type yields an empty ``FormData``. A body the
        parser rejects raises ``BadRequest``.
        """
        if "_form" in self._cache:
            return self._cache["_form"]
        if media_type(self.content_type) not in FORM_CONTENT_TYPES:
            result = FormData()
        else:
            raw = await self.body()
            try:
                result = parse_form_data(raw, self.content_type or "")
            except (UnicodeDecodeError, ValueError) as exc:
                raise BadRequest("Malformed form body") from exc
        self._cache["_form"] = result
        return result

    @property
    def route_path(self) -> str:
        """The path the router matches: raw when the server sent it."""
        return self.raw_path or self.path

    @property
    def is_json(self) -> bool:
        kind = media_type(self.content_type)
        return kind == "application/json" or kind.endswith("+json")

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive,
        *,
        trust_proxy: bool = False,
        max_content_length: int | None = None,
    ) -> Request:
        """Build the request for one ASGI ``http`` scope."""
        server = scope.get("server")
        client = scope.get("client")
        query_string = scope.get("query_string", b"")
        raw_path = scope.get("raw_path")
        request = cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=Headers(scope.get("headers", ())),
            query=MultiDict.from_query_string(query_string),
            scheme=scope.get("scheme", "http"),
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            root_path=scope.get("root_path", ""),
            raw_path=raw_path.decode("latin-1") if raw_path else scope["path"],
            trust_proxy=trust_proxy,
            max_content_length=max_content_length,
            _receive=receive,
        )
        request._cache["_query_string"] = query_string
        return request
