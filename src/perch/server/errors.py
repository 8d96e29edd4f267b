"""Exception translation — any failure to an ``ErrorEnvelope``.

The translator is the single recovery point of the request pipeline:
routing, dispatch, and controller errors all arrive here exactly once.

- ``HTTPError`` keeps its status, detail, and headers.
- Anything else becomes a 500 with a generic message, so internal
  details never reach the client unless debug mode is on.
- Field-level ``errors`` are attached when the failure carries them.
- In debug mode an ``exception`` block describes the error and its
  causes (``raise ... from ...`` or implicit context), at most
  ``MAX_CAUSE_DEPTH`` levels deep.
"""

import logging
import traceback
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

from perch.container import Container
from perch.envelope import ErrorEnvelope
from perch.errors import HTTPError

logger = logging.getLogger("perch.server")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"
MAX_CAUSE_DEPTH = 10


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def _field_errors(exc: BaseException) -> Mapping[str, list[str]] | None:
    errors = getattr(exc, "errors", None)
    if isinstance(errors, Mapping) and errors:
        return {str(name): [str(v) for v in violations] for name, violations in errors.items()}
    return None


def _cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def _describe_one(exc: BaseException) -> dict[str, Any]:
    frames = traceback.extract_tb(exc.__traceback__)
    last = frames[-1] if frames else None
    return {
        "type": f"{type(exc).__module__}.{type(exc).__qualname__}",
        "message": str(exc),
        "file": last.filename if last else None,
        "line": last.lineno if last else None,
        "trace": [f"{f.filename}:{f.lineno} in {f.name}" for f in frames],
    }


def describe(exc: BaseException, max_depth: int = MAX_CAUSE_DEPTH) -> dict[str, Any]:
    """Diagnostic description of *exc* with its causes nested as ``previous``.

    The chain stops after *max_depth* entries or when an exception repeats.
    *exc* itself is always described, so a *max_depth* below 1 acts as 1.
    """
    chain: list[BaseException] = [exc]
    seen = {id(exc)}
    current = _cause(exc)
    while current is not None and len(chain) < max_depth and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        current = _cause(current)

    described = _describe_one(chain.pop())
    for item in reversed(chain):
        entry = _describe_one(item)
        entry["previous"] = described
        described = entry
    return described


def translate(exc: BaseException, *, debug: bool = False) -> ErrorEnvelope:
    """Build the error envelope for *exc*. Never raises."""
    try:
        if isinstance(exc, HTTPError):
            status = exc.status
            message = exc.detail or _reason(status)
            headers = tuple(exc.headers)
        else:
            status = 500
            message = INTERNAL_ERROR_MESSAGE
            headers = ()
        return ErrorEnvelope(
            status=status,
            message=message,
            headers=headers,
            errors=_field_errors(exc),
            exception=describe(exc) if debug else None,
        )
    except Exception:
        logger.exception("Exception translation failed for %s", type(exc).__name__)
        return ErrorEnvelope(status=500, message=INTERNAL_ERROR_MESSAGE)


class ExceptionTranslator:
    """The installed failure handler (container key ``exception.handler``)."""

    __slots__ = ("debug",)

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def __call__(self, exc: BaseException) -> ErrorEnvelope:
        return translate(exc, debug=self.debug)


class ExceptionTranslatorProvider:
    """Registers an ``ExceptionTranslator`` configured from ``config.debug``."""

    def register(self, container: Container, key: str) -> None:
        container.register(key, lambda c: ExceptionTranslator(debug=c.get("config").debug))
