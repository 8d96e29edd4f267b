"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts the scope to
a ``Request``, hands it to the application pipeline, and sends the
resulting ``Response`` back through ASGI ``send()``. Also runs the
lifespan protocol for startup and shutdown hooks.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.config import AppConfig
from perch.http.request import Request
from perch.http.response import Response
from perch.server.sender import send_response

logger = logging.getLogger("perch.server")

Pipeline = Callable[[Request], Awaitable[Response]]


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Pipeline,
    config: AppConfig,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(
        scope,
        receive,
        trust_proxy=config.trust_proxy,
        max_content_length=config.max_content_length,
    )
    response = await pipeline(request)
    logger.debug("%d %s %s", response.status, request.method, request.path)
    await send_response(response, send)


async def handle_lifespan(
    receive: Receive,
    send: Send,
    *,
    startup: Sequence[Callable[..., Any]] = (),
    shutdown: Sequence[Callable[..., Any]] = (),
) -> None:
    """Run the ASGI lifespan protocol.

    Startup hooks run in registration order before the server accepts
    requests; a failing hook reports ``lifespan.startup.failed``. Shutdown
    hooks run after the server stops accepting requests.
    """
    while True:
        message = await receive()
        msg_type = message["type"]

        if msg_type == "lifespan.startup":
            try:
                for hook in startup:
                    await invoke(hook)
            except Exception as exc:
                logger.exception("Startup hook failed")
                await send({"type": "lifespan.startup.failed", "message": str(exc)})
                return
            await send({"type": "lifespan.startup.complete"})

        elif msg_type == "lifespan.shutdown":
            try:
                for hook in shutdown:
                    await invoke(hook)
            except Exception as exc:
                logger.exception("Shutdown hook failed")
                await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                return
            await send({"type": "lifespan.shutdown.complete"})
            return
