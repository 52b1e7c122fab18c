"""Raw event shapes, classification and the fan-in serve loop.

Every raw source (a platform gateway, stdin, the cron ticker, ...) gets one
listener task. Listeners classify raw events into payloads and push them
onto a single memory object stream; one consumer loop starts a dispatch
task per payload. Events from different sources, and different events of
the same source, carry no ordering guarantee relative to each other.
"""

from __future__ import annotations

import math
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Literal

import anyio
import msgspec
from anyio.streams.memory import MemoryObjectSendStream

from .emitter import Emitter
from .logging import get_logger
from .model import (
    ComponentButton,
    ComponentSelect,
    ContextMenuMessage,
    ContextMenuUser,
    Envelope,
    ExternalEvent,
    InteractionCommand,
    ModalSubmit,
    Payload,
    ScheduledTick,
    TextMessage,
    is_payload,
)
from .transport import ReplySink

if TYPE_CHECKING:
    from .router import EventRouter

logger = get_logger(__name__)

InteractionKind = Literal[
    "command", "button", "select", "modal", "user_context", "message_context"
]


class RawMessage(msgspec.Struct, tag="message", tag_field="kind"):
    content: str
    author_id: int | str | None = None
    channel_id: int | str | None = None
    author_is_bot: bool = False


class RawInteraction(msgspec.Struct, tag="interaction", tag_field="kind"):
    interaction: InteractionKind
    name: str
    user_id: int | str | None = None
    channel_id: int | str | None = None
    options: dict[str, Any] = msgspec.field(default_factory=dict)
    values: list[str] = msgspec.field(default_factory=list)
    fields: dict[str, str] = msgspec.field(default_factory=dict)
    target_id: int | str | None = None


class RawScheduledTick(msgspec.Struct, tag="tick", tag_field="kind"):
    task: str
    scheduled_at: str | None = None


class RawExternalEvent(msgspec.Struct, tag="event", tag_field="kind"):
    name: str
    emitter: str | None = None
    args: list[Any] = msgspec.field(default_factory=list)


RawEvent = RawMessage | RawInteraction | RawScheduledTick | RawExternalEvent

_RAW_DECODER = msgspec.json.Decoder(RawEvent)


def decode_raw(payload: str | bytes) -> RawEvent:
    return _RAW_DECODER.decode(payload)


def parse_text_command(content: str, prefix: str) -> tuple[str, str] | None:
    stripped = content.lstrip()
    if not prefix or not stripped.startswith(prefix):
        return None
    rest = stripped[len(prefix) :].lstrip()
    if not rest:
        return None
    parts = rest.split(maxsplit=1)
    command = parts[0]
    args_text = parts[1] if len(parts) > 1 else ""
    return command, args_text


def classify_message(raw: RawMessage, *, prefix: str) -> TextMessage | None:
    if raw.author_is_bot:
        return None
    parsed = parse_text_command(raw.content, prefix)
    if parsed is None:
        return None
    command, args_text = parsed
    return TextMessage(
        name=command,
        envelope=Envelope(
            source_id=raw.channel_id, author_id=raw.author_id, raw_args=args_text
        ),
        raw=raw,
    )


def classify_interaction(raw: RawInteraction) -> Payload:
    source_id = raw.channel_id
    author_id = raw.user_id
    if raw.interaction == "command":
        return InteractionCommand(
            name=raw.name,
            envelope=Envelope(source_id, author_id, dict(raw.options)),
            raw=raw,
        )
    if raw.interaction == "button":
        return ComponentButton(
            name=raw.name,
            envelope=Envelope(source_id, author_id, dict(raw.options)),
            raw=raw,
        )
    if raw.interaction == "select":
        return ComponentSelect(
            name=raw.name,
            envelope=Envelope(source_id, author_id, tuple(raw.values)),
            raw=raw,
        )
    if raw.interaction == "modal":
        return ModalSubmit(
            name=raw.name,
            envelope=Envelope(source_id, author_id, dict(raw.fields)),
            raw=raw,
        )
    if raw.interaction == "user_context":
        return ContextMenuUser(
            name=raw.name,
            envelope=Envelope(source_id, author_id, raw.target_id),
            raw=raw,
        )
    if raw.interaction == "message_context":
        return ContextMenuMessage(
            name=raw.name,
            envelope=Envelope(source_id, author_id, raw.target_id),
            raw=raw,
        )
    raise ValueError(f"unknown interaction kind {raw.interaction!r}")


def classify(raw: Any, *, prefix: str) -> Payload | None:
    """Classify any raw shape; ``None`` means the event is not for us."""
    if isinstance(raw, RawMessage):
        return classify_message(raw, prefix=prefix)
    if isinstance(raw, RawInteraction):
        return classify_interaction(raw)
    if isinstance(raw, RawScheduledTick):
        return ScheduledTick(
            name=raw.task,
            envelope=Envelope(None, None, raw.scheduled_at),
            raw=raw,
        )
    if isinstance(raw, RawExternalEvent):
        return ExternalEvent(
            name=raw.name,
            envelope=Envelope(raw.emitter, None, tuple(raw.args)),
            raw=raw,
        )
    raise TypeError(f"cannot classify raw event of type {type(raw).__name__}")


def classifier(prefix: str) -> Callable[[Any], Payload | None]:
    return partial(classify, prefix=prefix)


@dataclass(frozen=True, slots=True)
class EventSource:
    name: str
    events: Callable[[], AsyncIterator[Any]]
    classify: Callable[[Any], Payload | None]
    reply: ReplySink | None = None


class EmitterSource:
    """Forwards events of an ``Emitter`` to the router as external events.

    Listeners are attached on construction, so anything emitted before
    ``serve`` starts is buffered. ``emit`` must run on the event loop
    thread. ``close()`` detaches the listeners and ends ``events()`` once
    the buffer is drained.
    """

    def __init__(
        self,
        emitter: Emitter,
        names: Iterable[str],
        *,
        label: str = "core",
        reply: ReplySink | None = None,
    ) -> None:
        self._emitter = emitter
        self._label = label
        self._reply = reply
        self._send, self._receive = anyio.create_memory_object_stream[
            RawExternalEvent
        ](math.inf)
        self._listeners: list[tuple[str, Callable[..., None]]] = []
        for name in dict.fromkeys(names):
            listener = partial(self._forward, name)
            emitter.on(name, listener)
            self._listeners.append((name, listener))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self._listeners)

    def _forward(self, name: str, *args: Any) -> None:
        self._send.send_nowait(
            RawExternalEvent(name=name, emitter=self._label, args=list(args))
        )

    def close(self) -> None:
        for name, listener in self._listeners:
            self._emitter.off(name, listener)
        self._listeners.clear()
        self._send.close()

    async def events(self) -> AsyncIterator[RawExternalEvent]:
        async with self._receive:
            async for raw in self._receive:
                yield raw

    def as_source(self) -> EventSource:
        return EventSource(
            name=f"emitter:{self._label}",
            events=self.events,
            classify=classifier(""),
            reply=self._reply,
        )


type _Item = tuple[Payload, ReplySink | None]


async def _listen(source: EventSource, send: MemoryObjectSendStream[_Item]) -> None:
    async with send:
        try:
            async for raw in source.events():
                try:
                    payload = source.classify(raw)
                    if payload is not None and not is_payload(payload):
                        raise TypeError(
                            f"classifier returned {type(payload).__name__},"
                            " expected a payload or None"
                        )
                except Exception as exc:  # noqa: BLE001
                    logger.exception(
                        "source.classify_failed",
                        source=source.name,
                        error=str(exc),
                        error_type=exc.__class__.__name__,
                    )
                    continue
                if payload is None:
                    continue
                await send.send((payload, source.reply))
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "source.failed",
                source=source.name,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return
    logger.debug("source.closed", source=source.name)


async def serve(
    router: EventRouter,
    sources: Iterable[EventSource],
    *,
    buffer_size: float | None = None,
) -> None:
    """Dispatch events from every source until all of them are exhausted.

    Returns once every source has ended and every in-flight dispatch has
    finished.
    """
    size = router.deps.settings.buffer_size if buffer_size is None else buffer_size
    send, receive = anyio.create_memory_object_stream[_Item](size)
    async with anyio.create_task_group() as tg:
        async with send:
            for source in sources:
                logger.debug("source.start", source=source.name)
                tg.start_soon(_listen, source, send.clone())
        async with receive:
            async for payload, reply in receive:
                tg.start_soon(router.handle, payload, reply)
