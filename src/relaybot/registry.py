from __future__ import annotations

from collections.abc import Iterable

from .emitter import Emitter
from .errors import (
    InvalidModuleType,
    MalformedModule,
    ModuleRejectedAtInit,
    RegistrationConflict,
    RegistryFrozen,
)
from .logging import get_logger
from .model import CommandType, PayloadKind, compatible_types, types_overlap
from .modules import Module
from .plugins import Plugin, run_init_plugins

logger = get_logger(__name__)

_PLUGIN_KINDS = frozenset({"init", "control"})


class ModuleRegistry:
    """Name/alias index of modules, one namespace per ``CommandType``.

    The registry has two phases. While building, ``register`` is the only
    mutator. ``ready()`` ends the build phase; from then on the registry is
    read-only and safe to share between concurrent dispatches.

    Names are unique across *overlapping* namespaces: a ``both`` module
    clashes with ``text`` and ``interactive`` modules of the same name, but
    a ``text`` module and an ``interactive`` module may share one.
    """

    def __init__(self, *, emitter: Emitter | None = None) -> None:
        self._emitter = emitter
        self._by_type: dict[CommandType, dict[str, Module]] = {
            command_type: {} for command_type in CommandType
        }
        self._modules: list[Module] = []
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def ready(self) -> None:
        if self._ready:
            return
        self._ready = True
        logger.info("registry.ready", modules=len(self._modules))
        if self._emitter is not None:
            self._emitter.emit("modules.loaded")

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return any(name in table for table in self._by_type.values())

    def modules(self) -> tuple[Module, ...]:
        return tuple(self._modules)

    def _find_conflict(self, module: Module) -> RegistrationConflict | None:
        seen: set[str] = set()
        for name in module.names:
            if not name or name in seen:
                continue
            seen.add(name)
            for command_type, table in self._by_type.items():
                if not types_overlap(module.type, command_type):
                    continue
                existing = table.get(name)
                if existing is not None:
                    return RegistrationConflict(
                        name, existing=existing.name, namespace=command_type.value
                    )
        return None

    def _validate(self, module: Module) -> None:
        if not isinstance(module.type, CommandType):
            raise InvalidModuleType(module.name, module.type)
        if not isinstance(module.name, str) or not module.name:
            raise MalformedModule(module.name, "name must be a non-empty string")
        for alias in module.aliases:
            if not isinstance(alias, str) or not alias:
                raise MalformedModule(
                    module.name, f"alias {alias!r} must be a non-empty string"
                )
        for plugin in module.plugins:
            if not isinstance(plugin, Plugin) or plugin.kind not in _PLUGIN_KINDS:
                raise MalformedModule(module.name, f"invalid plugin {plugin!r}")
        if len(set(module.names)) != len(module.names):
            raise RegistrationConflict(
                module.name, existing=module.name, namespace=module.type.value
            )
        conflict = self._find_conflict(module)
        if conflict is not None:
            raise conflict

    def _notify(self, status: str, module: Module) -> None:
        if self._emitter is not None:
            self._emitter.emit("module.register", status, module)

    async def register(self, module: Module) -> Module:
        if self._ready:
            raise RegistryFrozen(module.name)
        try:
            self._validate(module)
            try:
                accepted = await run_init_plugins(module.init_plugins, module)
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "registry.init_plugin_failed",
                    module=module.name,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                raise ModuleRejectedAtInit(module.name) from exc
            if not accepted:
                raise ModuleRejectedAtInit(module.name)
            # init plugins may have renamed the module or edited its aliases
            self._validate(module)
        except Exception:
            self._notify("failure", module)
            raise
        table = self._by_type[module.type]
        for name in module.names:
            table[name] = module
        self._modules.append(module)
        self._notify("success", module)
        logger.debug(
            "registry.registered",
            module=module.name,
            type=module.type.value,
            aliases=list(module.aliases),
        )
        return module

    async def register_all(self, modules: Iterable[Module]) -> list[Module]:
        """Register every module, skipping rejected and malformed ones.

        ``RegistrationConflict`` propagates: boot must stop on an ambiguous
        routing table.
        """
        registered: list[Module] = []
        for module in modules:
            try:
                registered.append(await self.register(module))
            except (ModuleRejectedAtInit, MalformedModule) as exc:
                logger.warning(
                    "registry.module_skipped",
                    module=module.name,
                    reason=str(exc),
                    error_type=exc.__class__.__name__,
                )
        return registered

    def resolve(self, name: str, kind: PayloadKind) -> Module | None:
        for command_type in _lookup_order(kind):
            module = self._by_type[command_type].get(name)
            if module is not None:
                return module
        return None


def _lookup_order(kind: PayloadKind) -> tuple[CommandType, ...]:
    # Exact types before BOTH; sorting keeps the order deterministic.
    types = compatible_types(kind)
    return tuple(sorted(types, key=lambda t: (t is CommandType.BOTH, t.value)))
