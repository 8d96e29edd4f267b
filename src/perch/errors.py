"""Perch exception hierarchy.

Shared across the container, router, dispatcher, and application so every
module raises and catches the same types. ``HTTPError`` subclasses are the
"categorized" errors: they carry the status, headers, and (optionally)
field-level errors that the exception translator copies into the response.
Anything else that reaches the translator is an internal fault.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TypeAlias

FieldErrors: TypeAlias = Mapping[str, list[str]]


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when the application is wired up incorrectly.

    Typically raised while the app freezes at startup: duplicate route
    names, constraints naming unknown placeholders, bad config files.
    """


class UnknownServiceError(PerchError, LookupError):
    """Raised by ``Container.get()`` for a key that was never registered."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No service registered under {key!r}")
        self.key = key


class MissingParameterError(PerchError, LookupError):
    """Raised by ``Router.url_for()`` when a placeholder has no value."""

    def __init__(self, route_name: str, param: str) -> None:
        super().__init__(f"Route {route_name!r} requires parameter {param!r}")
        self.route_name = route_name
        self.param = param


class ValidationError(PerchError):
    """Raised by stores when an entity fails validation on write.

    Not an HTTP error on its own: controllers usually re-raise it as
    ``BadRequest(exc.message, exc.errors)``.
    """

    def __init__(self, message: str = "Validation failed", errors: FieldErrors | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: FieldErrors = MappingProxyType(dict(errors or {}))


@dataclass(frozen=True, slots=True, eq=False)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, the dispatcher, or controllers. The exception
    translator uses ``status``, ``detail``, and ``headers`` verbatim and
    attaches ``errors`` when it is non-empty.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()
    errors: FieldErrors | None = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — the requested resource does not exist."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class RouteNotFound(NotFound):  # noqa: N818
    """404 — no route template matched, or ``url_for`` got an unknown name."""


class ControllerNotFound(NotFound):  # noqa: N818
    """404 — the route matched but no controller is registered for it."""


class BadRequest(HTTPError):  # noqa: N818
    """400 — the request was malformed or failed validation.

    ``errors`` maps field names to lists of violation descriptions::

        raise BadRequest("Invalid channel", {"name": ["required"]})
    """

    def __init__(self, detail: str = "Bad Request", errors: FieldErrors | None = None) -> None:
        super().__init__(
            status=400,
            detail=detail,
            errors=MappingProxyType(dict(errors)) if errors else None,
        )


class Unauthorized(HTTPError):  # noqa: N818
    """401 — carries a ``WWW-Authenticate`` challenge header."""

    def __init__(self, detail: str = "Unauthorized", challenge: str = "Bearer") -> None:
        super().__init__(
            status=401,
            detail=detail,
            headers=(("WWW-Authenticate", challenge),),
        )


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — the path exists but not for this HTTP method.

    Includes an ``Allow`` header listing the valid methods and embeds
    the allowed methods in the detail string.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )

    @property
    def allowed(self) -> frozenset[str]:
        """The methods listed in the ``Allow`` header."""
        value = dict(self.headers).get("Allow", "")
        return frozenset(m.strip() for m in value.split(",") if m.strip())
