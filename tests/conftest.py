from __future__ import annotations

import pytest

from relaybot.emitter import Emitter
from relaybot.ioc import CoreDependencies
from relaybot.registry import ModuleRegistry
from relaybot.router import EventRouter
from tests.fakes import FakeReplySink, make_deps


@pytest.fixture
def sink() -> FakeReplySink:
    return FakeReplySink()


@pytest.fixture
def emitter() -> Emitter:
    return Emitter()


@pytest.fixture
def deps(sink: FakeReplySink, emitter: Emitter) -> CoreDependencies:
    return make_deps(sink, emitter=emitter)


@pytest.fixture
def registry(emitter: Emitter) -> ModuleRegistry:
    return ModuleRegistry(emitter=emitter)


@pytest.fixture
def router(registry: ModuleRegistry, deps: CoreDependencies) -> EventRouter:
    return EventRouter(registry, deps)
