from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from .model import Payload, TextMessage

if TYPE_CHECKING:
    from .ioc import CoreDependencies
    from .modules import Module
    from .transport import ReplySink


@dataclass(frozen=True, slots=True)
class Args:
    """Arguments of one invocation.

    Text events carry the raw argument text and its whitespace tokens;
    every other event carries a mapping (interaction options, modal fields)
    or the raw value the source supplied under ``options``.
    """

    kind: Literal["text", "options"]
    text: str = ""
    tokens: tuple[str, ...] = ()
    options: Any = None

    @classmethod
    def from_payload(cls, payload: Payload) -> Args:
        raw = payload.envelope.raw_args
        if isinstance(payload, TextMessage):
            text = raw if isinstance(raw, str) else ""
            return cls(kind="text", text=text, tokens=tuple(text.split()))
        return cls(kind="options", options=raw)

    @property
    def raw(self) -> Any:
        return self.text if self.kind == "text" else self.options


@dataclass(slots=True, eq=False)
class Context:
    """Per-dispatch state handed to plugins, ``parse`` and ``execute``.

    A context belongs to exactly one dispatch. ``state`` is scratch space
    for plugins (e.g. a resolved permission level) and ``module`` is set
    once the router has resolved the target.
    """

    payload: Payload
    reply: ReplySink
    deps: CoreDependencies
    args: Args
    module: Module | None = None
    state: dict[str, Any] = field(default_factory=dict)
    replied: bool = False

    @classmethod
    def for_payload(
        cls, payload: Payload, *, reply: ReplySink, deps: CoreDependencies
    ) -> Context:
        return cls(
            payload=payload, reply=reply, deps=deps, args=Args.from_payload(payload)
        )

    @property
    def kind(self) -> str:
        return self.payload.type

    @property
    def name(self) -> str:
        return self.payload.name

    @property
    def author_id(self) -> Any:
        return self.payload.envelope.author_id

    @property
    def source_id(self) -> Any:
        return self.payload.envelope.source_id

    @property
    def is_text(self) -> bool:
        return self.args.kind == "text"

    @property
    def is_interaction(self) -> bool:
        return self.payload.type == "interaction_command"

    @property
    def tokens(self) -> tuple[str, ...]:
        return self.args.tokens

    @property
    def options(self) -> Any:
        return self.args.options
