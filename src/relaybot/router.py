from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Literal

from .args import ParseFailure
from .boundary import Crashed, ErrorBoundary
from .context import Context
from .errors import ArgumentParseFailure, ExecutionThrew
from .ioc import CoreDependencies
from .logging import dispatch_context, get_logger
from .model import Payload, is_payload
from .modules import Module
from .plugins import Failed, Halted, run_control_plugins
from .registry import ModuleRegistry
from .transport import ReplySink, deliver

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Executed:
    outcome: Literal["executed"] = field(default="executed", init=False)
    module: Module
    result: Any = None


@dataclass(frozen=True, slots=True)
class ShortCircuited:
    outcome: Literal["short_circuited"] = field(default="short_circuited", init=False)
    module: Module
    payload: Any = None
    has_payload: bool = False


@dataclass(frozen=True, slots=True)
class ParseRejected:
    outcome: Literal["parse_rejected"] = field(default="parse_rejected", init=False)
    module: Module
    payload: Any


@dataclass(frozen=True, slots=True)
class NotFound:
    outcome: Literal["not_found"] = field(default="not_found", init=False)
    name: str
    kind: str


type DispatchOutcome = Executed | ShortCircuited | ParseRejected | NotFound


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class EventRouter:
    """Routes classified payloads to modules.

    ``dispatch`` runs one event through resolution, parsing, the control
    plugins and ``execute``, strictly in that order, and raises when a
    plugin or ``execute`` fails. ``handle`` is the same dispatch inside the
    error boundary and never raises; the serve loop only calls ``handle``.
    """

    def __init__(self, registry: ModuleRegistry, deps: CoreDependencies) -> None:
        self._registry = registry
        self._deps = deps
        self._boundary = ErrorBoundary(deps)

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def deps(self) -> CoreDependencies:
        return self._deps

    def context_for(
        self, payload: Payload, reply: ReplySink | None = None
    ) -> Context:
        sink = reply if reply is not None else self._deps.reply
        return Context.for_payload(payload, reply=sink, deps=self._deps)

    async def handle(
        self, payload: Payload, reply: ReplySink | None = None
    ) -> DispatchOutcome | Crashed:
        try:
            if not is_payload(payload):
                raise TypeError(
                    f"cannot dispatch {type(payload).__name__}, expected a payload"
                )
            context = self.context_for(payload, reply)
        except Exception as exc:  # noqa: BLE001
            # no context exists yet, so there is nobody to reply to
            logger.error(
                "dispatch.malformed_payload",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            self._deps.emitter.emit("error", exc)
            return Crashed(exc)
        with dispatch_context(
            kind=payload.type, name=payload.name, author_id=context.author_id
        ):
            return await self._boundary.run(context, self.dispatch)

    async def dispatch(self, context: Context) -> DispatchOutcome:
        payload = context.payload
        module = self._registry.resolve(payload.name, payload.type)
        if module is None:
            logger.info("dispatch.not_found", kind=payload.type, name=payload.name)
            await deliver(context, self._deps.settings.unknown_command_reply)
            return NotFound(name=payload.name, kind=payload.type)
        context.module = module

        args: Any = context.args
        if module.parse is not None:
            try:
                args = await _maybe_await(module.parse(context, context.args.raw))
            except ArgumentParseFailure as exc:
                args = ParseFailure(exc.payload)
            if isinstance(args, ParseFailure):
                logger.info("dispatch.parse_rejected", module=module.name)
                self._activate("failure", context)
                await deliver(context, args.payload)
                return ParseRejected(module=module, payload=args.payload)

        outcome = await run_control_plugins(module.control_plugins, context)
        if isinstance(outcome, Failed):
            self._activate("failure", context)
            raise outcome.error from outcome.error.error
        if isinstance(outcome, Halted):
            logger.info(
                "dispatch.halted",
                module=module.name,
                with_payload=outcome.has_payload,
            )
            self._activate("failure", context)
            if outcome.has_payload:
                await deliver(context, outcome.payload)
            return ShortCircuited(
                module=module,
                payload=outcome.payload,
                has_payload=outcome.has_payload,
            )

        try:
            result = await _maybe_await(module.execute(context, args))
        except Exception as exc:
            self._activate("failure", context)
            raise ExecutionThrew(module.name, exc, context=context) from exc
        self._activate("success", context)
        if result is not None:
            await deliver(context, result)
        return Executed(module=module, result=result)

    def _activate(self, status: str, context: Context) -> None:
        self._deps.emitter.emit(
            "module.activate", status, context.payload, context.module
        )
