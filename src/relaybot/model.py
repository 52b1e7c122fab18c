"""Relaybot domain model types (module types, payloads, replies)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Literal


class CommandType(StrEnum):
    TEXT = "text"
    INTERACTIVE = "interactive"
    BOTH = "both"
    BUTTON = "button"
    SELECT = "select"
    MODAL = "modal"
    CONTEXT_USER = "context_user"
    CONTEXT_MESSAGE = "context_message"
    SCHEDULED = "scheduled"
    EXTERNAL = "external"


type PayloadKind = Literal[
    "text_message",
    "interaction_command",
    "component_button",
    "component_select",
    "modal_submit",
    "context_menu_user",
    "context_menu_message",
    "scheduled_tick",
    "external_event",
]

COMPATIBLE_TYPES: MappingProxyType[str, frozenset[CommandType]] = MappingProxyType(
    {
        "text_message": frozenset({CommandType.TEXT, CommandType.BOTH}),
        "interaction_command": frozenset({CommandType.INTERACTIVE, CommandType.BOTH}),
        "component_button": frozenset({CommandType.BUTTON}),
        "component_select": frozenset({CommandType.SELECT}),
        "modal_submit": frozenset({CommandType.MODAL}),
        "context_menu_user": frozenset({CommandType.CONTEXT_USER}),
        "context_menu_message": frozenset({CommandType.CONTEXT_MESSAGE}),
        "scheduled_tick": frozenset({CommandType.SCHEDULED}),
        "external_event": frozenset({CommandType.EXTERNAL}),
    }
)


def compatible_types(kind: PayloadKind) -> frozenset[CommandType]:
    try:
        return COMPATIBLE_TYPES[kind]
    except KeyError:
        raise ValueError(f"unknown payload kind {kind!r}") from None


def accepted_kinds(command_type: CommandType) -> frozenset[str]:
    return frozenset(
        kind for kind, types in COMPATIBLE_TYPES.items() if command_type in types
    )


def types_overlap(left: CommandType, right: CommandType) -> bool:
    """True when some payload kind could be routed to either type."""
    return not accepted_kinds(left).isdisjoint(accepted_kinds(right))


@dataclass(frozen=True, slots=True)
class Envelope:
    source_id: int | str | None
    author_id: int | str | None
    raw_args: Any = None


@dataclass(frozen=True, slots=True)
class TextMessage:
    type: Literal["text_message"] = field(default="text_message", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class InteractionCommand:
    type: Literal["interaction_command"] = field(
        default="interaction_command", init=False
    )
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class ComponentButton:
    type: Literal["component_button"] = field(default="component_button", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class ComponentSelect:
    type: Literal["component_select"] = field(default="component_select", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)

    @property
    def values(self) -> tuple[str, ...]:
        return tuple(self.envelope.raw_args or ())


@dataclass(frozen=True, slots=True)
class ModalSubmit:
    type: Literal["modal_submit"] = field(default="modal_submit", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)

    @property
    def fields(self) -> dict[str, str]:
        return dict(self.envelope.raw_args or {})


@dataclass(frozen=True, slots=True)
class ContextMenuUser:
    type: Literal["context_menu_user"] = field(
        default="context_menu_user", init=False
    )
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)

    @property
    def target_user_id(self) -> Any:
        return self.envelope.raw_args


@dataclass(frozen=True, slots=True)
class ContextMenuMessage:
    type: Literal["context_menu_message"] = field(
        default="context_menu_message", init=False
    )
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)

    @property
    def target_message_id(self) -> Any:
        return self.envelope.raw_args


@dataclass(frozen=True, slots=True)
class ScheduledTick:
    type: Literal["scheduled_tick"] = field(default="scheduled_tick", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class ExternalEvent:
    type: Literal["external_event"] = field(default="external_event", init=False)
    name: str
    envelope: Envelope
    raw: Any = field(default=None, compare=False)


type Payload = (
    TextMessage
    | InteractionCommand
    | ComponentButton
    | ComponentSelect
    | ModalSubmit
    | ContextMenuUser
    | ContextMenuMessage
    | ScheduledTick
    | ExternalEvent
)

PAYLOAD_CLASSES: MappingProxyType[str, type] = MappingProxyType(
    {
        "text_message": TextMessage,
        "interaction_command": InteractionCommand,
        "component_button": ComponentButton,
        "component_select": ComponentSelect,
        "modal_submit": ModalSubmit,
        "context_menu_user": ContextMenuUser,
        "context_menu_message": ContextMenuMessage,
        "scheduled_tick": ScheduledTick,
        "external_event": ExternalEvent,
    }
)


def is_payload(value: object) -> bool:
    """True for instances of exactly the payload class their ``type`` tag names."""
    tag = getattr(value, "type", None)
    if not isinstance(tag, str):
        return False
    return PAYLOAD_CLASSES.get(tag) is type(value)


@dataclass(frozen=True, slots=True)
class Reply:
    text: str
    ephemeral: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


type ReplyPayload = str | Reply
