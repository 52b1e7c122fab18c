"""Failure kinds raised while registering modules and dispatching events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import Context


class RelaybotError(RuntimeError):
    pass


class RegistryFrozen(RelaybotError):
    def __init__(self, name: str) -> None:
        super().__init__(f"cannot register {name!r}: registry is ready (read-only)")
        self.name = name


class RegistrationConflict(RelaybotError):
    """A name or alias is already taken in an overlapping namespace.

    Fatal at boot: serving must not start with an ambiguous routing table.
    """

    def __init__(self, name: str, *, existing: str, namespace: str) -> None:
        super().__init__(
            f"{name!r} conflicts with module {existing!r} in namespace {namespace!r}"
        )
        self.name = name
        self.existing = existing
        self.namespace = namespace


class ModuleRejectedAtInit(RelaybotError):
    def __init__(self, name: str) -> None:
        super().__init__(f"module {name!r} was rejected by an init plugin")
        self.name = name


class MalformedModule(RelaybotError):
    """The module definition itself is unusable; only that module is skipped."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"module {name!r} is malformed: {reason}")
        self.name = name
        self.reason = reason


class InvalidModuleType(MalformedModule):
    def __init__(self, name: str, value: Any) -> None:
        super().__init__(name, f"unknown type {value!r}")
        self.value = value


class ArgumentParseFailure(RelaybotError):
    """Raised by a module's parse step; ``payload`` becomes the reply."""

    def __init__(self, payload: Any) -> None:
        super().__init__(str(payload))
        self.payload = payload


class DispatchError(RelaybotError):
    def __init__(self, message: str, *, context: Context) -> None:
        super().__init__(message)
        self.context = context


class PluginFailed(DispatchError):
    def __init__(
        self, plugin: str, error: BaseException, *, context: Context
    ) -> None:
        super().__init__(f"plugin {plugin!r} failed: {error}", context=context)
        self.plugin = plugin
        self.error = error


class ExecutionThrew(DispatchError):
    def __init__(self, module: str, error: BaseException, *, context: Context) -> None:
        super().__init__(f"module {module!r} raised: {error}", context=context)
        self.module = module
        self.error = error
