from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

import anyio
from croniter import croniter

from .logging import get_logger
from .model import CommandType
from .modules import Module
from .sources import EventSource, RawScheduledTick, classifier

logger = get_logger(__name__)


class ScheduledTaskSource:
    """Emits a ``RawScheduledTick`` each time a scheduled module's trigger fires."""

    def __init__(
        self,
        modules: Iterable[Module],
        *,
        timezone: str = "UTC",
        now: Callable[[ZoneInfo], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._tz = ZoneInfo(timezone)
        self._now = now or (lambda tz: datetime.now(tz))
        self._sleep = sleep
        self._tasks: dict[str, croniter] = {}
        for module in modules:
            if module.type is not CommandType.SCHEDULED:
                continue
            if not module.trigger or not croniter.is_valid(module.trigger):
                logger.warning(
                    "scheduled.invalid_trigger",
                    module=module.name,
                    trigger=module.trigger,
                )
                continue
            self._tasks[module.name] = croniter(
                module.trigger, self._now(self._tz)
            )

    @property
    def task_names(self) -> tuple[str, ...]:
        return tuple(self._tasks)

    async def events(self) -> AsyncIterator[RawScheduledTick]:
        if not self._tasks:
            return
        upcoming = {
            name: itr.get_next(datetime) for name, itr in self._tasks.items()
        }
        while True:
            name = min(upcoming, key=lambda key: (upcoming[key], key))
            fire_at = upcoming[name]
            delay = (fire_at - self._now(self._tz)).total_seconds()
            if delay > 0:
                await self._sleep(delay)
            upcoming[name] = self._tasks[name].get_next(datetime)
            logger.debug(
                "scheduled.fire", task=name, scheduled_at=fire_at.isoformat()
            )
            yield RawScheduledTick(task=name, scheduled_at=fire_at.isoformat())

    def as_source(self) -> EventSource:
        # ticks carry no text, so the prefix is never consulted
        return EventSource(
            name="scheduled", events=self.events, classify=classifier("")
        )
