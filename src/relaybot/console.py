"""A stdin/stdout transport for driving the router locally."""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Callable
from typing import IO, Any

import msgspec
from anyio import to_thread
from rich.console import Console
from rich.text import Text

from .context import Context
from .logging import get_logger
from .model import Reply
from .sources import EventSource, RawEvent, RawMessage, classifier, decode_raw

logger = get_logger(__name__)

CONSOLE_AUTHOR = "console"


def parse_line(line: str) -> RawEvent | None:
    """Plain lines are chat messages, lines starting with ``{`` raw JSON events."""
    text = line.rstrip("\r\n")
    if not text.strip():
        return None
    if text.lstrip().startswith("{"):
        return decode_raw(text)
    return RawMessage(
        content=text, author_id=CONSOLE_AUTHOR, channel_id=CONSOLE_AUTHOR
    )


class ConsoleReplySink:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    async def send(self, context: Context, payload: Any) -> None:
        label = context.module.name if context.module is not None else context.name
        if isinstance(payload, Reply):
            text = payload.text
        else:
            text = str(payload)
        self._console.print(Text.assemble((label, "bold cyan"), " ", text))


class ConsoleSource:
    def __init__(
        self,
        stream: IO[str] | None = None,
        *,
        readline: Callable[[], str] | None = None,
    ) -> None:
        self._readline = readline or (stream or sys.stdin).readline

    async def events(self) -> AsyncIterator[RawEvent]:
        while True:
            line = await to_thread.run_sync(self._readline, abandon_on_cancel=True)
            if line == "":
                return
            try:
                raw = parse_line(line)
            except msgspec.ValidationError as exc:
                logger.warning("console.invalid_event", error=str(exc))
                continue
            except msgspec.DecodeError as exc:
                logger.warning("console.malformed_json", error=str(exc))
                continue
            if raw is not None:
                yield raw

    def as_source(self, *, prefix: str) -> EventSource:
        return EventSource(
            name="console", events=self.events, classify=classifier(prefix)
        )
