"""Perch application class.

Mutable during setup (routes, controllers, services, hooks). Frozen at
runtime when ``app.run()``, ``handle()`` or ``__call__()`` is first
invoked: the router compiles, controllers are discovered, and the
container stops accepting registrations.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from types import ModuleType
from typing import Any, TypeVar

from perch._internal.asgi import Receive, Scope, Send
from perch.config import AppConfig, load_config
from perch.container import Container
from perch.dispatch import ControllerFactory, ControllerRegistry, Dispatcher
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import Route, RouteBuilder
from perch.routing.router import Router
from perch.server.errors import ExceptionTranslatorProvider
from perch.server.handler import handle_lifespan, handle_request
from perch.server.normalize import normalize, render

logger = logging.getLogger("perch.app")

T = TypeVar("T")

CONTROLLER_PATTERN = r"[a-z0-9_-]+"
ID_PATTERN = r"[1-9]\d*"


class App:
    """The perch application.

    Usage::

        app = App(AppConfig(debug=True))
        app.map_default_routes()
        app.container.set("channels.store", InMemoryChannelStore())

        @app.controller
        class ChannelsController(Controller):
            def get(self, params): ...

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one thread compiles the app even when
        several workers receive their first request at once.
    """

    __slots__ = (
        "_container",
        "_freeze_lock",
        "_frozen",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        config_dirs: Iterable[str | Path] = (),
    ) -> None:
        container = Container()
        container.factory(
            "config.factory",
            lambda c, *dirs: load_config(*dirs, base=config),
        )
        dirs = tuple(config_dirs)
        self.config: AppConfig = container.make("config.factory", *dirs) if dirs else (config or AppConfig())

        container.set("config", self.config)
        container.register("router", lambda c: Router())
        container.register(
            "controllers",
            lambda c: ControllerRegistry(suffix=c.get("config").controller_suffix),
        )
        container.factory("dispatcher", Dispatcher)
        container.register_provider(ExceptionTranslatorProvider(), "exception.handler")
        container.set("response.handler", normalize)

        self._container = container
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()

    # -- Services --

    @property
    def container(self) -> Container:
        """The root service container. Register services before serving."""
        return self._container

    @property
    def router(self) -> Router:
        return self._container.get("router")

    @property
    def controllers(self) -> ControllerRegistry:
        return self._container.get("controllers")

    # -- Routing --

    def map(self, name: str, path: str) -> RouteBuilder:
        """Map a named route template. See ``Router.map``."""
        self._check_not_frozen()
        return self.router.map(name, path)

    def map_default_routes(self) -> None:
        """Install the two REST routes every resource shares.

        - ``resource``: ``/:controller/:id`` for GET, PUT and DELETE
        - ``collection``: ``/:controller`` for POST and GET
        """
        self.map("resource", "/:controller/:id").set_methods("GET", "PUT", "DELETE").set_requirements(
            {"controller": CONTROLLER_PATTERN, "id": ID_PATTERN}
        )
        self.map("collection", "/:controller").set_methods("POST", "GET").set_requirement(
            "controller", CONTROLLER_PATTERN
        )

    def url_for(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        *,
        absolute: bool = False,
        request: Request | None = None,
    ) -> str:
        """Reverse-route *name*.

        Absolute URLs use ``request.base_url`` when a request is given and
        ``http://{host}:{port}`` from the config otherwise.
        """
        self._ensure_frozen()
        base_url = request.base_url if request is not None else f"http://{self.config.host}:{self.config.port}"
        return self.router.url_for(name, params, absolute=absolute, base_url=base_url)

    def routes(self) -> list[Route]:
        """The compiled route table, in match order."""
        self._ensure_frozen()
        return self.router.routes

    # -- Controllers --

    def controller(self, target: type[T] | str) -> Any:
        """Register a controller class, or a factory under a route name.

        Usage::

            @app.controller
            class ChannelsController(Controller): ...

            @app.controller("users")
            def users_controller(container):
                return LegacyUsersResource(container.get("users.store"))
        """
        self._check_not_frozen()
        if isinstance(target, type):
            self.controllers.register(target)
            return target

        def decorator(factory: ControllerFactory) -> ControllerFactory:
            self._check_not_frozen()
            self.controllers.register(target, factory)
            return factory

        return decorator

    def discover(self, module: ModuleType | str) -> list[str]:
        """Register every ``*Controller`` class defined in *module*."""
        self._check_not_frozen()
        return self.controllers.discover(module)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Request pipeline --

    async def handle(self, request: Request) -> Response:
        """Run one request through match, dispatch, normalize, and render.

        Every failure is translated exactly once by the container's
        ``exception.handler``; this method always returns a response.
        """
        self._ensure_frozen()
        scope = self._container.scope(request=request)
        translate = scope.get("exception.handler")
        try:
            dispatcher = scope.get("dispatcher")
            result = await dispatcher.dispatch(request)
            if isinstance(result, Response):
                return result
            envelope = scope.get("response.handler")(result)
            return render(envelope, message_key=self.config.message_key)
        except Exception as exc:
            self._log_failure(request, exc)
            return render(translate(exc), message_key=self.config.message_key)

    def _log_failure(self, request: Request, exc: Exception) -> None:
        status = exc.status if isinstance(exc, HTTPError) else 500
        if status >= 500:
            logger.error("%d %s %s", status, request.method, request.path, exc_info=exc)
        else:
            logger.debug("%d %s %s: %s", status, request.method, request.path, exc)

    # -- Server --

    def run(
        self,
        host: str | None = None,
        port: int | None = None,
        log_level: str | None = None,
    ) -> None:
        """Serve the app with uvicorn.

        Arguments left as ``None`` fall back to the app's config. Compiles
        the app first so configuration errors surface before the server
        binds its socket.
        """
        import uvicorn

        self._ensure_frozen()
        uvicorn.run(
            self,
            host=host or self.config.host,
            port=port or self.config.port,
            log_level=(log_level or self.config.log_level).lower(),
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        self._ensure_frozen()
        if scope["type"] == "lifespan":
            await handle_lifespan(
                receive,
                send,
                startup=tuple(self._startup_hooks),
                shutdown=tuple(self._shutdown_hooks),
            )
            return

        await handle_request(scope, receive, send, pipeline=self.handle, config=self.config)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        router = self.router
        if not len(router):
            logger.debug("No routes mapped; installing the default resource routes")
            self.map_default_routes()
        router.compile()

        controllers = self.controllers
        if self.config.controller_namespace:
            controllers.discover(self.config.controller_namespace)
        controllers.freeze()

        # Resolve the failure handler now so a broken provider fails at startup.
        self._container.get("exception.handler")
        self._container.freeze()
        self._frozen = True
        logger.info(
            "Application ready: %d route(s), %d controller(s)",
            len(router.routes),
            len(controllers),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, controllers, and services before calling app.run()."
            )
            raise RuntimeError(msg)
