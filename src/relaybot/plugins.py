"""Plugin control signals and the sequential plugin pipeline.

Plugins come in two kinds. *Init* plugins run once while a module is being
registered and may edit the module before it becomes routable. *Control*
plugins run on every dispatch, after the target module has been resolved
and before its ``execute`` is called.

Every plugin returns one of three control signals:

* ``Next`` - carry on with the following plugin (or with ``execute``)
* ``Stop`` - abort silently
* ``StopWith(payload)`` - abort and reply with ``payload``

Plugins run strictly one after the other; an async plugin is awaited to
completion before the next one starts, so later plugins can rely on state
that earlier ones attached to the context.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from .errors import PluginFailed
from .logging import get_logger

if TYPE_CHECKING:
    from .context import Context
    from .modules import Module

logger = get_logger(__name__)

type PluginKind = Literal["init", "control"]


@dataclass(frozen=True, slots=True)
class Next:
    signal: Literal["next"] = field(default="next", init=False)


@dataclass(frozen=True, slots=True)
class Stop:
    signal: Literal["stop"] = field(default="stop", init=False)


@dataclass(frozen=True, slots=True)
class StopWith:
    signal: Literal["stop_with"] = field(default="stop_with", init=False)
    payload: Any


type PluginResult = Next | Stop | StopWith


class _Controller:
    __slots__ = ()

    def next(self) -> Next:
        return Next()

    def stop(self) -> Stop:
        return Stop()

    def stop_with(self, payload: Any) -> StopWith:
        return StopWith(payload)


controller = _Controller()

type InitFn = Callable[["Module"], PluginResult | Awaitable[PluginResult]]
type ControlFn = Callable[["Context"], PluginResult | Awaitable[PluginResult]]


@dataclass(frozen=True, slots=True)
class Plugin:
    kind: PluginKind
    execute: Callable[[Any], PluginResult | Awaitable[PluginResult]]
    name: str = ""

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return getattr(self.execute, "__qualname__", repr(self.execute))


def init_plugin(fn: InitFn | None = None, *, name: str = "") -> Any:
    """Wrap ``fn`` as an init plugin, bare or as ``@init_plugin(name=...)``."""

    def wrap(inner: InitFn) -> Plugin:
        return Plugin(kind="init", execute=inner, name=name)

    if fn is None:
        return wrap
    return wrap(fn)


def control_plugin(fn: ControlFn | None = None, *, name: str = "") -> Any:
    """Wrap ``fn`` as a control plugin, bare or as ``@control_plugin(name=...)``."""

    def wrap(inner: ControlFn) -> Plugin:
        return Plugin(kind="control", execute=inner, name=name)

    if fn is None:
        return wrap
    return wrap(fn)


def split_plugins(
    plugins: Iterable[Plugin],
) -> tuple[tuple[Plugin, ...], tuple[Plugin, ...]]:
    init: list[Plugin] = []
    control: list[Plugin] = []
    for plugin in plugins:
        if plugin.kind == "init":
            init.append(plugin)
        elif plugin.kind == "control":
            control.append(plugin)
        else:
            raise ValueError(f"unknown plugin kind {plugin.kind!r}")
    return tuple(init), tuple(control)


async def _call(plugin: Plugin, arg: Any) -> PluginResult:
    result = plugin.execute(arg)
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, (Next, Stop, StopWith)):
        raise TypeError(
            f"plugin {plugin.label!r} returned {result!r}, expected a control signal"
        )
    return result


@dataclass(frozen=True, slots=True)
class Proceed:
    outcome: Literal["proceed"] = field(default="proceed", init=False)


@dataclass(frozen=True, slots=True)
class Halted:
    outcome: Literal["halted"] = field(default="halted", init=False)
    payload: Any = None
    has_payload: bool = False


@dataclass(frozen=True, slots=True)
class Failed:
    outcome: Literal["failed"] = field(default="failed", init=False)
    error: PluginFailed


type ControlOutcome = Proceed | Halted | Failed


async def run_init_plugins(plugins: Sequence[Plugin], module: Module) -> bool:
    """Run init plugins in order; False means the module must not be registered.

    Exceptions propagate to the registry, which treats them as a rejection.
    """
    for plugin in plugins:
        if plugin.kind != "init":
            continue
        result = await _call(plugin, module)
        if isinstance(result, Next):
            continue
        logger.info(
            "plugins.init_stopped", module=module.name, plugin=plugin.label
        )
        return False
    return True


async def run_control_plugins(
    plugins: Sequence[Plugin], context: Context
) -> ControlOutcome:
    for plugin in plugins:
        if plugin.kind != "control":
            continue
        try:
            result = await _call(plugin, context)
        except Exception as exc:  # noqa: BLE001
            return Failed(PluginFailed(plugin.label, exc, context=context))
        if isinstance(result, Next):
            continue
        if isinstance(result, StopWith):
            return Halted(payload=result.payload, has_payload=True)
        return Halted()
    return Proceed()
