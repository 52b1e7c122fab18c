"""Boot-time dependency wiring.

``CoreDependencies`` is the explicit struct the router, the error boundary
and every execution context share. Anything a module needs beyond the core
(database handles, API clients) goes into the ``Container`` under a typed
key, usually the class itself, and is looked up with ``deps.services.get``.
Both are assembled once at boot and never changed while serving.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar, cast, overload

from .emitter import Emitter
from .logging import get_logger
from .settings import RelaybotSettings
from .transport import ReplySink

T = TypeVar("T")

type Scope = Literal["singleton", "transient"]


class ServiceNotFound(LookupError):
    def __init__(self, key: Any) -> None:
        super().__init__(f"no service registered for {_key_label(key)}")
        self.key = key


def _key_label(key: Any) -> str:
    return getattr(key, "__qualname__", None) or repr(key)


@dataclass(slots=True)
class _Provider:
    scope: Scope
    factory: Callable[[], Any]
    instance: Any = None
    built: bool = False


class Container:
    __slots__ = ("_providers", "_frozen")

    def __init__(self) -> None:
        self._providers: dict[Any, _Provider] = {}
        self._frozen = False

    def _add(self, key: Any, provider: _Provider) -> None:
        if self._frozen:
            raise RuntimeError(
                f"cannot register {_key_label(key)}: container is frozen"
            )
        if key in self._providers:
            raise ValueError(f"duplicate service {_key_label(key)}")
        self._providers[key] = provider

    def add_singleton(self, key: Any, instance: Any) -> None:
        self._add(
            key,
            _Provider("singleton", lambda: instance, instance=instance, built=True),
        )

    def add_lazy_singleton(self, key: Any, factory: Callable[[], Any]) -> None:
        """Build the shared instance on first lookup."""
        if not callable(factory):
            raise TypeError("lazy singletons need a factory")
        self._add(key, _Provider("singleton", factory))

    def add_transient(self, key: Any, factory: Callable[[], Any]) -> None:
        if not callable(factory):
            raise TypeError("transient services need a factory")
        self._add(key, _Provider("transient", factory))

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, key: object) -> bool:
        return key in self._providers

    @overload
    def get(self, key: type[T]) -> T: ...

    @overload
    def get(self, key: Any) -> Any: ...

    def get(self, key: Any) -> Any:
        provider = self._providers.get(key)
        if provider is None:
            raise ServiceNotFound(key)
        if provider.scope == "transient":
            return provider.factory()
        if not provider.built:
            provider.instance = provider.factory()
            provider.built = True
        return provider.instance

    def scope_of(self, key: Any) -> Scope:
        provider = self._providers.get(key)
        if provider is None:
            raise ServiceNotFound(key)
        return provider.scope


@dataclass(frozen=True, slots=True)
class CoreDependencies:
    settings: RelaybotSettings
    reply: ReplySink
    emitter: Emitter
    logger: Any
    services: Container = field(default_factory=Container)

    def service(self, key: type[T]) -> T:
        return cast(T, self.services.get(key))


def make_dependencies(
    *,
    settings: RelaybotSettings,
    reply: ReplySink,
    services: Container | None = None,
    emitter: Emitter | None = None,
    logger: Any = None,
) -> CoreDependencies:
    container = services if services is not None else Container()
    container.freeze()
    return CoreDependencies(
        settings=settings,
        reply=reply,
        emitter=emitter if emitter is not None else Emitter(),
        logger=logger if logger is not None else get_logger("relaybot"),
        services=container,
    )
