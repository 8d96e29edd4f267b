"""Service container — string keys mapped to values or factories.

Three kinds of entry:

- **value** (``set``): returned as-is.
- **shared** (``register``): ``factory(container)`` runs on first ``get``;
  the result is cached for the lifetime of the container.
- **per-call** (``factory``): ``factory(container)`` runs on every ``get``.
  ``make(key, *args)`` passes extra construction arguments.

The application fills one root container during bootstrap and freezes it.
Each request then works in ``root.scope(...)``: a frozen child that shares
the definitions and starts from a copy of the root's shared cache. Services
the root resolved during bootstrap (router, registry) stay singletons, while
anything first resolved inside one request is never visible to the next.

There is no cycle detection. A factory that resolves its own key recurses
until the interpreter's recursion limit.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeAlias

from perch.errors import UnknownServiceError

ServiceFactory: TypeAlias = Callable[..., Any]


class ServiceProvider(Protocol):
    """An object that knows how to register one service.

    Usage::

        class TranslatorProvider:
            def register(self, container: Container, key: str) -> None:
                container.register(key, lambda c: ExceptionTranslator(...))

        container.register_provider(TranslatorProvider(), "exception.handler")
    """

    def register(self, container: "Container", key: str) -> None: ...


class Container:
    """Registry of services resolved lazily by key.

    Usage::

        container = Container()
        container.set("config", AppConfig())
        container.register("router", lambda c: Router())
        container.factory("clock", lambda c: time.monotonic())
        container.freeze()

        container.get("router") is container.get("router")  # True
    """

    __slots__ = ("_factories", "_frozen", "_resolved", "_shared", "_values")

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._shared: dict[str, ServiceFactory] = {}
        self._factories: dict[str, ServiceFactory] = {}
        self._resolved: dict[str, Any] = {}
        self._frozen = False

    # -- Registration --

    def set(self, key: str, value: Any) -> None:
        """Store a concrete value under *key*, replacing any prior entry."""
        self._check_not_frozen()
        self._forget(key)
        self._values[key] = value

    def register(self, key: str, factory: ServiceFactory) -> None:
        """Store a shared factory, resolved once and cached."""
        self._check_not_frozen()
        self._forget(key)
        self._shared[key] = factory

    def factory(self, key: str, factory: ServiceFactory) -> None:
        """Store a per-call factory, re-run on every resolution."""
        self._check_not_frozen()
        self._forget(key)
        self._factories[key] = factory

    def register_provider(self, provider: ServiceProvider, key: str) -> None:
        """Let *provider* register its service under *key*."""
        self._check_not_frozen()
        provider.register(self, key)

    # -- Resolution --

    def get(self, key: str) -> Any:
        """Resolve *key*.

        Order: concrete value, cached shared result, shared factory (then
        cached), per-call factory (never cached).

        Raises ``UnknownServiceError`` if *key* was never registered.
        """
        if key in self._values:
            return self._values[key]
        if key in self._resolved:
            return self._resolved[key]
        if key in self._shared:
            value = self._shared[key](self)
            self._resolved[key] = value
            return value
        if key in self._factories:
            return self._factories[key](self)
        raise UnknownServiceError(key)

    def make(self, key: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke the per-call factory for *key* with construction arguments.

        Raises ``UnknownServiceError`` if *key* is not a per-call factory.
        """
        try:
            factory = self._factories[key]
        except KeyError:
            raise UnknownServiceError(key) from None
        return factory(self, *args, **kwargs)

    def has(self, key: str) -> bool:
        """True if *key* is registered in any form."""
        return key in self._values or key in self._shared or key in self._factories

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def keys(self) -> list[str]:
        """All registered keys, sorted."""
        return sorted({*self._values, *self._shared, *self._factories})

    # -- Lifecycle --

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """End the registration phase. Resolution keeps working."""
        self._frozen = True

    def scope(self, **values: Any) -> "Container":
        """Return a frozen child for one request.

        The child shares this container's definitions, has *values* preset
        as concrete entries, and owns a copy of the shared cache.
        """
        child = Container()
        child._values = {**self._values, **values}
        child._shared = self._shared
        child._factories = self._factories
        child._resolved = dict(self._resolved)
        child._frozen = True
        return child

    # -- Internal --

    def _forget(self, key: str) -> None:
        self._values.pop(key, None)
        self._shared.pop(key, None)
        self._factories.pop(key, None)
        self._resolved.pop(key, None)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the container after it has been frozen. "
                "Register services during application setup."
            )
            raise RuntimeError(msg)

    def __repr__(self) -> str:
        return f"<Container keys={self.keys()!r} frozen={self._frozen}>"
