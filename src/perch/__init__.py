"""Perch — a small JSON REST API core.

Routes requests to resource controllers and answers every request, success
or failure, with the same JSON envelope.

Basic usage::

    from perch import App, Controller

    app = App()
    app.map_default_routes()

    @app.controller
    class ChannelsController(Controller):
        def get(self, params):
            return {"id": params.get_int("id")}

    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "BadRequest",
    "ConfigurationError",
    "Container",
    "Controller",
    "Envelope",
    "HTTPError",
    "MethodNotAllowed",
    "NotFound",
    "Pager",
    "ParameterBag",
    "PerchError",
    "Request",
    "Response",
    "Router",
    "Unauthorized",
    "ValidationError",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Container":
        from perch.container import Container

        return Container

    if name == "Controller":
        from perch.dispatch import Controller

        return Controller

    if name == "Envelope":
        from perch.envelope import Envelope

        return Envelope

    if name in ("Pager", "ParameterBag"):
        from perch import params as _params

        return getattr(_params, name)

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name == "Router":
        from perch.routing.router import Router

        return Router

    if name in (
        "BadRequest",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
        "Unauthorized",
        "ValidationError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
