from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .context import Context


class ReplySink(Protocol):
    """Delivers a reply payload for one dispatch.

    The router calls ``send`` at most once per dispatch. Payloads are
    passed through untouched (``str``, ``Reply`` or anything a custom
    transport understands).
    """

    async def send(self, context: Context, payload: Any) -> None: ...


async def deliver(context: Context, payload: Any) -> bool:
    """Send ``payload`` through the context's sink unless a reply went out already."""
    if context.replied:
        return False
    context.replied = True
    await context.reply.send(context, payload)
    return True
