from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .model import CommandType
from .plugins import Plugin, split_plugins

if TYPE_CHECKING:
    from .context import Context

type Execute = Callable[["Context", Any], Any | Awaitable[Any]]
type Parse = Callable[["Context", Any], Any | Awaitable[Any]]


@dataclass(slots=True, eq=False)
class Module:
    """A routable unit of behavior.

    Only init plugins may change a module, and only while it is being
    registered. ``eq=False`` keeps identity semantics: the registry hands
    out the same object for the name and every alias.
    """

    name: str
    type: CommandType
    execute: Execute
    description: str = ""
    aliases: tuple[str, ...] = ()
    plugins: tuple[Plugin, ...] = ()
    parse: Parse | None = None
    trigger: str | None = None
    options: tuple[dict[str, Any], ...] = ()
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def init_plugins(self) -> tuple[Plugin, ...]:
        return split_plugins(self.plugins)[0]

    @property
    def control_plugins(self) -> tuple[Plugin, ...]:
        return split_plugins(self.plugins)[1]

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


def _coerce_type(value: CommandType | str) -> CommandType | str:
    # Unknown values are left alone; the registry rejects them with
    # InvalidModuleType so one bad module does not abort discovery.
    try:
        return CommandType(value)
    except ValueError:
        return value


def command_module(
    *,
    type: CommandType | str,
    execute: Execute,
    name: str = "",
    description: str = "",
    aliases: Iterable[str] = (),
    plugins: Sequence[Plugin] = (),
    parse: Parse | None = None,
    options: Iterable[dict[str, Any]] = (),
) -> Module:
    if not callable(execute):
        raise TypeError("command_module() requires a callable execute")
    return Module(
        name=name,
        type=_coerce_type(type),  # type: ignore[arg-type]
        execute=execute,
        description=description,
        aliases=tuple(aliases),
        plugins=tuple(plugins),
        parse=parse,
        options=tuple(options),
    )


def event_module(
    *,
    execute: Execute,
    name: str = "",
    description: str = "",
    plugins: Sequence[Plugin] = (),
) -> Module:
    """Module reacting to an externally emitted event called ``name``."""
    if not callable(execute):
        raise TypeError("event_module() requires a callable execute")
    return Module(
        name=name,
        type=CommandType.EXTERNAL,
        execute=execute,
        description=description,
        plugins=tuple(plugins),
    )


def scheduled_task(
    *,
    trigger: str,
    execute: Execute,
    name: str = "",
    description: str = "",
    plugins: Sequence[Plugin] = (),
) -> Module:
    if not trigger or not trigger.strip():
        raise ValueError("scheduled_task() requires a cron trigger")
    if not callable(execute):
        raise TypeError("scheduled_task() requires a callable execute")
    return Module(
        name=name,
        type=CommandType.SCHEDULED,
        execute=execute,
        description=description,
        plugins=tuple(plugins),
        trigger=trigger.strip(),
    )
