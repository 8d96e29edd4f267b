"""ASGI response sending: one ``Response`` becomes a start and a body message."""

from perch._internal.asgi import Send
from perch.http.response import Response

# 1xx, 204 and 304 never carry a message body.
NO_BODY_STATUSES = frozenset({204, 304})


def _encode_headers(response: Response, body_length: int) -> list[tuple[bytes, bytes]]:
    pairs = [("content-type", response.content_type)]
    pairs.extend((name.lower(), value) for name, value in response.headers)
    pairs.append(("content-length", str(body_length)))
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in pairs]


async def send_response(response: Response, send: Send) -> None:
    """Emit *response* through ASGI ``send()``.

    ``content-length`` always reflects what is actually sent, so it is
    ``0`` for statuses that forbid a body even if the response has one.
    """
    status = response.status
    body = b"" if status < 200 or status in NO_BODY_STATUSES else response.body_bytes

    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": _encode_headers(response, len(body)),
        }
    )
    await send({"type": "http.response.body", "body": body})
