from __future__ import annotations

from pathlib import Path

import anyio
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .app import build_app
from .config import ConfigError
from .console import ConsoleReplySink, ConsoleSource
from .errors import RegistrationConflict
from .loader import discover_all
from .logging import get_logger, setup_logging, suppress_logs
from .model import CommandType
from .scheduled import ScheduledTaskSource
from .settings import RelaybotSettings, load_settings
from .sources import EmitterSource

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _load(config: Path | None, modules: list[str] | None) -> RelaybotSettings:
    try:
        settings, _ = load_settings(config)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if modules:
        settings = settings.model_copy(update={"modules": modules})
    if not settings.modules:
        typer.echo(
            "error: no module packages configured (use --modules or `modules`)",
            err=True,
        )
        raise typer.Exit(code=1)
    return settings


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Route chat events to command modules."""


@app.command("run")
def run_cmd(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to relaybot.toml."
    ),
    modules: list[str] | None = typer.Option(
        None, "--modules", "-m", help="Package to load modules from (repeatable)."
    ),
    debug: bool = typer.Option(False, "--debug", help="Log debug output."),
) -> None:
    """Serve stdin lines, scheduled ticks and emitted events through the router."""
    setup_logging(debug=debug)
    settings = _load(config, modules)

    async def _main() -> None:
        loaded = discover_all(settings.modules)
        bot = await build_app(loaded, settings=settings, reply=ConsoleReplySink())
        sources = [ConsoleSource().as_source(prefix=settings.prefix)]
        if settings.scheduled:
            ticker = ScheduledTaskSource(
                bot.registry.modules(), timezone=settings.timezone
            )
            if ticker.task_names:
                sources.append(ticker.as_source())
        external = [
            module.name
            for module in bot.registry.modules()
            if module.type is CommandType.EXTERNAL
        ]
        if external:
            sources.append(EmitterSource(bot.deps.emitter, external).as_source())
        await bot.serve(sources)

    try:
        anyio.run(_main)
    except (ConfigError, RegistrationConflict) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None


@app.command("modules")
def modules_cmd(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to relaybot.toml."
    ),
    modules: list[str] | None = typer.Option(
        None, "--modules", "-m", help="Package to load modules from (repeatable)."
    ),
) -> None:
    """List the modules that would be registered."""
    settings = _load(config, modules)
    try:
        with suppress_logs():
            loaded = discover_all(settings.modules)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    table = Table("name", "type", "aliases", "plugins", "description")
    for module in sorted(loaded, key=lambda m: (str(m.type), m.name)):
        table.add_row(
            module.name,
            str(module.type),
            ", ".join(module.aliases) or "-",
            str(len(module.plugins)),
            module.description or "-",
        )
    Console().print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
