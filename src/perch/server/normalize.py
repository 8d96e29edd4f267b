"""Response normalization — controller return values to JSON responses.

A controller returns either an ``Envelope`` it built itself or any other
value. ``normalize`` turns the second case into the first; ``render``
serializes either envelope shape into a ``Response``.
"""

from typing import Any

from perch.envelope import Envelope, ErrorEnvelope
from perch.http.response import Response


def normalize(value: Any) -> Envelope:
    """Wrap *value* as ``data`` unless it already is an ``Envelope``.

    ``None`` is a valid payload and yields ``data: null``.
    """
    if isinstance(value, Envelope):
        return value
    return Envelope(data=value)


def render(payload: Envelope | ErrorEnvelope, *, message_key: str = "message") -> Response:
    """Serialize an envelope into a JSON ``Response``.

    The HTTP status mirrors the envelope status; headers carried by the
    envelope (``Allow``, ``WWW-Authenticate``) are copied onto the response.
    """
    response = Response.json_body(payload.to_dict(message_key), status=payload.status)
    if payload.headers:
        response = response.with_headers(payload.headers)
    return response
