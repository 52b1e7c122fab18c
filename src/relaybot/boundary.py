from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Literal, TypeVar

from .context import Context
from .errors import ExecutionThrew, PluginFailed
from .ioc import CoreDependencies
from .logging import get_logger
from .transport import deliver

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Crashed:
    outcome: Literal["crashed"] = field(default="crashed", init=False)
    error: Exception


class ErrorBoundary:
    """Contains the failure of one dispatch.

    Whatever escapes a dispatch is logged, emitted as ``error`` and turned
    into the configured failure reply. Nothing is re-raised, so the serve
    loop keeps going for every other event.
    """

    def __init__(self, deps: CoreDependencies) -> None:
        self._deps = deps

    async def run(
        self, context: Context, fn: Callable[[Context], Awaitable[T]]
    ) -> T | Crashed:
        try:
            return await fn(context)
        except Exception as exc:  # noqa: BLE001
            await self.report(context, exc)
            return Crashed(exc)

    async def report(self, context: Context, exc: Exception) -> None:
        cause: BaseException = exc
        if isinstance(exc, (PluginFailed, ExecutionThrew)):
            cause = exc.error
        module = context.module.name if context.module is not None else None
        logger.error(
            "dispatch.failed",
            kind=context.kind,
            name=context.name,
            module=module,
            error=str(cause),
            error_type=exc.__class__.__name__,
            cause_type=cause.__class__.__name__,
            exc_info=cause,
        )
        self._deps.emitter.emit("error", exc)
        try:
            await deliver(context, self._deps.settings.failure_reply)
        except Exception as send_exc:  # noqa: BLE001
            logger.warning(
                "dispatch.failure_reply_failed",
                kind=context.kind,
                name=context.name,
                error=str(send_exc),
                error_type=send_exc.__class__.__name__,
            )
