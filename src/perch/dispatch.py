"""Dispatcher — from a matched route to exactly one controller operation.

One ``Dispatcher`` is created per request (it is a per-call factory in the
container) and walks a fixed sequence of stages::

    UNMATCHED -> MATCHED -> RESOLVED -> INVOKED -> SUCCEEDED
                                    \\-> FAILED (from any stage)

Failures are recorded on the dispatcher and re-raised unmodified. Turning
them into responses is the exception translator's job, not this module's.
"""

import enum
import importlib
import logging
import re
from collections.abc import Callable, Mapping
from types import MappingProxyType, ModuleType
from typing import Any

from perch._internal.invoke import invoke
from perch.container import Container
from perch.errors import BadRequest, ConfigurationError, ControllerNotFound, MethodNotAllowed
from perch.http.forms import FORM_CONTENT_TYPES, media_type
from perch.http.request import Request
from perch.params import ParameterBag
from perch.routing.route import RouteMatch
from perch.routing.router import Router

logger = logging.getLogger("perch.dispatch")

VERB_OPERATIONS: Mapping[str, str] = MappingProxyType(
    {
        "GET": "get",
        "POST": "create",
        "PUT": "update",
        "DELETE": "delete",
    }
)

ControllerFactory = Callable[[Container], Any]


class Stage(enum.Enum):
    UNMATCHED = "unmatched"
    MATCHED = "matched"
    RESOLVED = "resolved"
    INVOKED = "invoked"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def controller_class_name(name: str, suffix: str = "Controller") -> str:
    """``channels`` -> ``ChannelsController``, ``user-profiles`` -> ``UserProfilesController``.

    Names that already carry the suffix are returned unchanged.
    """
    if name.endswith(suffix) and name[:1].isupper():
        return name
    parts = [p for p in re.split(r"[-_\s]+", name) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts) + suffix


class Controller:
    """Base class for resource controllers.

    Subclasses implement any of ``get``, ``create``, ``update`` and
    ``delete``; each receives a ``ParameterBag`` and returns a plain value,
    an ``Envelope``, or raises an ``HTTPError``::

        class ChannelsController(Controller):
            def get(self, params):
                store = self.service("channels.store")
                ...

    The container a controller receives is the request scope, so
    ``request`` is the current request.
    """

    def __init__(self, container: Container) -> None:
        self.container = container

    def service(self, key: str) -> Any:
        """Resolve a service from the request container."""
        return self.container.get(key)

    @property
    def request(self) -> Request:
        return self.container.get("request")

    @property
    def config(self) -> Any:
        return self.container.get("config")


def _has_operation(controller: Any) -> bool:
    return any(callable(getattr(controller, op, None)) for op in VERB_OPERATIONS.values())


class ControllerRegistry:
    """Controller factories keyed by class-style name.

    Populated at startup, looked up at dispatch time. No string-to-type
    reflection happens while serving requests.
    """

    __slots__ = ("_factories", "_frozen", "_suffix")

    def __init__(self, suffix: str = "Controller") -> None:
        self._factories: dict[str, ControllerFactory] = {}
        self._suffix = suffix
        self._frozen = False

    def register(self, target: str | type, factory: ControllerFactory | None = None) -> str:
        """Register a controller and return the key it was stored under.

        *target* is a controller class (its ``__name__`` is the key and the
        class itself the default factory) or a route-style name such as
        ``"channels"`` (normalized to ``ChannelsController``).

        Raises ``ConfigurationError`` for a duplicate key and ``TypeError``
        when a name is given without a factory.
        """
        if self._frozen:
            msg = "Cannot register controllers after the app has been frozen."
            raise RuntimeError(msg)

        if isinstance(target, type):
            key = target.__name__
            factory = factory or target
        else:
            key = controller_class_name(target, self._suffix)
            if factory is None:
                msg = f"Controller {target!r} needs a factory."
                raise TypeError(msg)

        if key in self._factories:
            msg = f"Controller {key!r} is already registered."
            raise ConfigurationError(msg)
        self._factories[key] = factory
        return key

    def discover(self, module: ModuleType | str) -> list[str]:
        """Register every ``Controller`` subclass defined in *module*.

        Only classes whose name ends with the registry suffix and that are
        defined in *module* itself (not imported into it) are picked up.
        Already-registered names are skipped.
        """
        if isinstance(module, str):
            module = importlib.import_module(module)

        found: list[str] = []
        for obj in vars(module).values():
            if not isinstance(obj, type) or obj is Controller:
                continue
            if not issubclass(obj, Controller) or obj.__module__ != module.__name__:
                continue
            if not obj.__name__.endswith(self._suffix) or obj.__name__ in self._factories:
                continue
            found.append(self.register(obj))
        logger.debug("Discovered %d controller(s) in %s", len(found), module.__name__)
        return found

    def resolve(self, name: str, container: Container) -> Any:
        """Build the controller for route name *name*.

        Raises ``ControllerNotFound`` if nothing is registered under the
        normalized name or the built object has no verb operation.
        """
        key = controller_class_name(name, self._suffix)
        factory = self._factories.get(key)
        if factory is None:
            raise ControllerNotFound(f"Controller {name!r} does not exist.")
        controller = factory(container)
        if not _has_operation(controller):
            raise ControllerNotFound(f"Controller {name!r} does not handle any HTTP method.")
        return controller

    def freeze(self) -> None:
        self._frozen = True

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and controller_class_name(name, self._suffix) in self._factories

    def __len__(self) -> int:
        return len(self._factories)


async def build_parameters(request: Request, match: RouteMatch) -> ParameterBag:
    """Route params, body fields, and query params for one request.

    A JSON body must be an object. Malformed JSON or forms raise
    ``BadRequest``.
    """
    body: Mapping[str, Any] = {}
    if request.is_json:
        data = await request.json()
        if data is not None and not isinstance(data, dict):
            raise BadRequest("JSON body must be an object")
        body = data or {}
    elif media_type(request.content_type) in FORM_CONTENT_TYPES:
        body = await request.form()
    return ParameterBag(route=match.typed_params, body=body, query=request.query)


class Dispatcher:
    """Runs one request through the dispatch stages.

    Usage::

        dispatcher = container.get("dispatcher")
        payload = await dispatcher.dispatch(request)
    """

    __slots__ = ("_container", "_controllers", "_router", "controller", "error", "match", "stage")

    def __init__(self, container: Container) -> None:
        self._container = container
        self._router: Router = container.get("router")
        self._controllers: ControllerRegistry = container.get("controllers")
        self.stage = Stage.UNMATCHED
        self.match: RouteMatch | None = None
        self.controller: Any = None
        self.error: BaseException | None = None

    async def dispatch(self, request: Request) -> Any:
        """Match, resolve, and invoke. Returns the controller's payload.

        Any error raised along the way is recorded in ``error``, moves the
        dispatcher to ``FAILED``, and propagates unchanged.
        """
        if self.stage is not Stage.UNMATCHED:
            msg = "A dispatcher handles exactly one request."
            raise RuntimeError(msg)
        try:
            return await self._run(request)
        except Exception as exc:
            self.error = exc
            self._advance(Stage.FAILED)
            raise

    async def _run(self, request: Request) -> Any:
        match = self._router.match(request.route_path, request.method)
        self.match = match
        self._advance(Stage.MATCHED)

        name = match.params.get("controller")
        if not name:
            raise ControllerNotFound(f"Route {match.route.name!r} does not name a controller.")
        self.controller = self._controllers.resolve(name, self._container)
        self._advance(Stage.RESOLVED)

        operation_name = VERB_OPERATIONS.get(match.method)
        operation = getattr(self.controller, operation_name, None) if operation_name else None
        if not callable(operation):
            allowed = frozenset(
                verb for verb, op in VERB_OPERATIONS.items() if callable(getattr(self.controller, op, None))
            )
            raise MethodNotAllowed(allowed & match.route.methods or allowed)

        params = await build_parameters(request, match)
        self._advance(Stage.INVOKED)
        result = await invoke(operation, params)
        self._advance(Stage.SUCCEEDED)
        return result

    def _advance(self, stage: Stage) -> None:
        logger.debug("dispatch %s -> %s", self.stage.name, stage.name)
        self.stage = stage
