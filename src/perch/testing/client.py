"""In-process async test client for perch applications.

Requests go through the app's ASGI entry point, so routing, dispatch,
translation, and sending run exactly as they do under uvicorn. The
captured reply is rebuilt as a perch ``Response``.
"""

from __future__ import annotations

import json as json_module
from typing import Any
from urllib.parse import quote, unquote, urlencode

from perch._internal.invoke import invoke
from perch.app import App
from perch.http.response import JSON_CONTENT_TYPE, Response

TEST_HOST = "testserver"

# Characters left alone when percent-encoding a caller-supplied path.
# Existing escapes survive because "%" is kept.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


def _encode_body(
    body: bytes | None,
    json: Any,
    data: dict[str, Any] | None,
) -> tuple[bytes, str | None]:
    """Request body and the content type it implies, if any."""
    if json is not None:
        return json_module.dumps(json).encode("utf-8"), JSON_CONTENT_TYPE
    if data is not None:
        return urlencode(data, doseq=True).encode("utf-8"), "application/x-www-form-urlencoded"
    return body or b"", None


def _build_scope(
    method: str,
    target: str,
    headers: dict[str, str],
    query: dict[str, Any] | None,
) -> dict[str, Any]:
    raw_path, _, query_string = target.partition("?")
    raw_path = quote(raw_path, safe=_PATH_SAFE)
    if query:
        encoded = urlencode(query, doseq=True)
        query_string = f"{query_string}&{encoded}" if query_string else encoded

    raw_headers = [(b"host", TEST_HOST.encode("latin-1"))]
    raw_headers.extend((k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items())
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method.upper(),
        "scheme": "http",
        "path": unquote(raw_path),
        "raw_path": raw_path.encode("ascii"),
        "query_string": query_string.encode("latin-1"),
        "root_path": "",
        "headers": raw_headers,
        "server": (TEST_HOST, 80),
        "client": ("127.0.0.1", 0),
    }


class _Capture:
    """ASGI ``send`` target that records one HTTP reply."""

    __slots__ = ("body", "headers", "status")

    def __init__(self) -> None:
        self.status = 500
        self.headers: list[tuple[bytes, bytes]] = []
        self.body = bytearray()

    async def __call__(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = list(message.get("headers", ()))
        elif message["type"] == "http.response.body":
            self.body.extend(message.get("body", b""))

    def to_response(self) -> Response:
        content_type = JSON_CONTENT_TYPE
        headers: list[tuple[str, str]] = []
        for raw_name, raw_value in self.headers:
            name, value = raw_name.decode("latin-1"), raw_value.decode("latin-1")
            if name == "content-type":
                content_type = value
            elif name != "content-length":
                headers.append((name, value))
        return Response(
            body=bytes(self.body),
            status=self.status,
            content_type=content_type,
            headers=tuple(headers),
        )


class TestClient:
    """Async test client for perch applications.

    Entering the context freezes the app and runs its startup hooks;
    leaving it runs the shutdown hooks::

        async with TestClient(app) as client:
            response = await client.get("/channels/42")
            assert response.status == 200
            assert response.json["data"]["id"] == 42

    Response header names come back lower-cased; ``Response.header()``
    looks them up case-insensitively.
    """

    __test__ = False  # Tell pytest this is not a test class
    __slots__ = ("app",)

    def __init__(self, app: App) -> None:
        self.app = app

    async def __aenter__(self) -> TestClient:
        self.app._ensure_frozen()
        for hook in self.app._startup_hooks:
            await invoke(hook)
        return self

    async def __aexit__(self, *args: object) -> None:
        for hook in self.app._shutdown_hooks:
            await invoke(hook)

    # -- Verbs --

    async def get(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        return await self.request("GET", path, headers=headers, query=query)

    async def post(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> Response:
        """POST a raw, JSON, or URL-encoded form body."""
        return await self.request("POST", path, headers=headers, body=body, json=json, data=data)

    async def put(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> Response:
        return await self.request("PUT", path, headers=headers, body=body, json=json, data=data)

    async def delete(self, path: str, *, headers: dict[str, str] | None = None) -> Response:
        return await self.request("DELETE", path, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        """Send one request of any method through the ASGI app.

        *path* may carry its own query string; *query* is appended to it.
        Explicit *headers* override the content type implied by *json* or
        *data*.
        """
        payload, implied_type = _encode_body(body, json, data)
        merged = {"content-type": implied_type} if implied_type else {}
        merged.update({k.lower(): v for k, v in (headers or {}).items()})
        scope = _build_scope(method, path, merged, query)

        delivered = False

        async def receive() -> dict[str, Any]:
            nonlocal delivered
            if delivered:
                return {"type": "http.disconnect"}
            delivered = True
            return {"type": "http.request", "body": payload, "more_body": False}

        capture = _Capture()
        await self.app(scope, receive, capture)
        return capture.to_response()
