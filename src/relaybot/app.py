from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .emitter import Emitter
from .ioc import Container, CoreDependencies, make_dependencies
from .logging import get_logger
from .modules import Module
from .registry import ModuleRegistry
from .router import EventRouter
from .settings import RelaybotSettings
from .sources import EventSource, serve
from .transport import ReplySink

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class App:
    registry: ModuleRegistry
    router: EventRouter
    deps: CoreDependencies

    async def serve(self, sources: Iterable[EventSource]) -> None:
        await serve(self.router, sources)


async def build_app(
    modules: Iterable[Module],
    *,
    settings: RelaybotSettings,
    reply: ReplySink,
    services: Container | None = None,
    emitter: Emitter | None = None,
) -> App:
    """Register ``modules`` and return a ready-to-serve app.

    ``RegistrationConflict`` propagates: the caller must not serve with an
    ambiguous routing table.
    """
    deps = make_dependencies(
        settings=settings, reply=reply, services=services, emitter=emitter
    )
    registry = ModuleRegistry(emitter=deps.emitter)
    registered = await registry.register_all(modules)
    registry.ready()
    logger.info(
        "app.ready",
        modules=[module.name for module in registered],
    )
    return App(registry=registry, router=EventRouter(registry, deps), deps=deps)
