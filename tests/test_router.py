import pytest
import structlog

from relaybot.args import ParseFailure, parse_int
from relaybot.boundary import Crashed
from relaybot.errors import (
    ArgumentParseFailure,
    ExecutionThrew,
    PluginFailed,
    RegistrationConflict,
)
from relaybot.model import (
    CommandType,
    ComponentButton,
    ComponentSelect,
    ContextMenuMessage,
    ContextMenuUser,
    Envelope,
    ExternalEvent,
    InteractionCommand,
    ModalSubmit,
    Reply,
    ScheduledTick,
    TextMessage,
)
from relaybot.modules import command_module, event_module
from relaybot.plugins import control_plugin, controller
from relaybot.router import (
    EventRouter,
    Executed,
    NotFound,
    ParseRejected,
    ShortCircuited,
)
from tests.fakes import (
    FAILURE,
    UNKNOWN,
    BrokenReplySink,
    FakeReplySink,
    button_event,
    make_deps,
    slash_event,
    text_event,
)


def _ping(ctx, args):
    return "pong"


@pytest.mark.anyio
async def test_text_command_replies_with_execute_result(registry, router, sink) -> None:
    await registry.register(command_module(name="ping", type="text", execute=_ping))

    outcome = await router.handle(text_event("ping"))

    assert isinstance(outcome, Executed)
    assert outcome.result == "pong"
    assert sink.payloads == ["pong"]


@pytest.mark.anyio
async def test_guard_stops_dispatch_with_reply(registry, router, sink) -> None:
    executed: list[str] = []

    def is_admin(ctx):
        if ctx.author_id != 99:
            return controller.stop_with("No permission")
        return controller.next()

    def ban(ctx, args):
        executed.append(args.text)
        return "banned"

    await registry.register(
        command_module(
            name="ban",
            type="both",
            execute=ban,
            plugins=[control_plugin(is_admin)],
        )
    )

    outcome = await router.handle(slash_event("ban", {"user": 5}, author_id=1))

    assert isinstance(outcome, ShortCircuited)
    assert outcome.has_payload is True
    assert sink.payloads == ["No permission"]
    assert executed == []

    outcome = await router.handle(text_event("ban", "troll", author_id=99))

    assert isinstance(outcome, Executed)
    assert executed == ["troll"]
    assert sink.payloads == ["No permission", "banned"]


@pytest.mark.anyio
async def test_alias_routes_to_same_module(registry, router, sink) -> None:
    seen: list[str] = []

    def kick(ctx, args):
        seen.append(ctx.name)
        return f"kicked {args.text}"

    module = command_module(name="kick", type="text", aliases=["k"], execute=kick)
    await registry.register(module)

    outcome = await router.handle(text_event("k", "bob"))

    assert isinstance(outcome, Executed)
    assert outcome.module is module
    assert seen == ["k"]
    assert sink.payloads == ["kicked bob"]


@pytest.mark.anyio
async def test_conflicting_registration_keeps_first_module(
    registry, router, sink
) -> None:
    await registry.register(
        command_module(name="info", type="text", execute=lambda ctx, args: "first")
    )
    with pytest.raises(RegistrationConflict):
        await registry.register(
            command_module(name="info", type="both", execute=lambda ctx, a: "second")
        )

    await router.handle(text_event("info"))

    assert sink.payloads == ["first"]


@pytest.mark.anyio
async def test_parse_failure_replies_and_skips_execute(
    registry, router, sink
) -> None:
    executed: list[int] = []

    def parse(ctx, raw):
        return parse_int(raw, "Expected a number")

    def roll(ctx, sides):
        executed.append(sides)
        return f"rolled d{sides}"

    await registry.register(
        command_module(name="roll", type="text", parse=parse, execute=roll)
    )

    outcome = await router.handle(text_event("roll", "abc"))

    assert isinstance(outcome, ParseRejected)
    assert outcome.payload == "Expected a number"
    assert sink.payloads == ["Expected a number"]
    assert executed == []

    await router.handle(text_event("roll", "20"))

    assert executed == [20]
    assert sink.payloads[-1] == "rolled d20"


@pytest.mark.anyio
async def test_parse_may_raise_argument_failure(registry, router, sink) -> None:
    def parse(ctx, raw):
        raise ArgumentParseFailure(Reply("Usage: /echo text", ephemeral=True))

    await registry.register(
        command_module(name="echo", type="text", parse=parse, execute=_ping)
    )

    outcome = await router.handle(text_event("echo"))

    assert isinstance(outcome, ParseRejected)
    assert sink.payloads == [Reply("Usage: /echo text", ephemeral=True)]


@pytest.mark.anyio
async def test_parse_runs_before_control_plugins(registry, router, sink) -> None:
    order: list[str] = []

    def parse(ctx, raw):
        order.append("parse")
        return raw.upper()

    def guard(ctx):
        order.append("guard")
        return controller.next()

    def execute(ctx, args):
        order.append(f"execute:{args}")

    await registry.register(
        command_module(
            name="shout",
            type="text",
            parse=parse,
            plugins=[control_plugin(guard)],
            execute=execute,
        )
    )

    await router.handle(text_event("shout", "hi"))

    assert order == ["parse", "guard", "execute:HI"]


@pytest.mark.anyio
async def test_async_parse_and_execute_are_awaited(registry, router, sink) -> None:
    async def parse(ctx, raw):
        return ParseFailure("nope") if raw == "bad" else raw

    async def execute(ctx, args):
        return f"got {args}"

    await registry.register(
        command_module(name="wait", type="text", parse=parse, execute=execute)
    )

    await router.handle(text_event("wait", "ok"))
    await router.handle(text_event("wait", "bad"))

    assert sink.payloads == ["got ok", "nope"]


@pytest.mark.anyio
async def test_crash_is_contained_and_later_events_still_work(
    registry, router, sink, emitter
) -> None:
    errors: list[Exception] = []
    emitter.on("error", errors.append)

    def crash(ctx, args):
        raise ZeroDivisionError("boom")

    await registry.register(command_module(name="crash", type="text", execute=crash))
    await registry.register(command_module(name="ping", type="text", execute=_ping))

    outcome = await router.handle(text_event("crash"))

    assert isinstance(outcome, Crashed)
    assert isinstance(outcome.error, ExecutionThrew)
    assert isinstance(outcome.error.error, ZeroDivisionError)
    assert sink.payloads == [FAILURE]
    assert errors == [outcome.error]

    await router.handle(text_event("ping"))

    assert sink.payloads == [FAILURE, "pong"]


@pytest.mark.anyio
async def test_dispatch_raises_execution_failure(registry, router) -> None:
    def crash(ctx, args):
        raise KeyError("missing")

    await registry.register(command_module(name="crash", type="text", execute=crash))
    context = router.context_for(text_event("crash"))

    with pytest.raises(ExecutionThrew) as excinfo:
        await router.dispatch(context)

    assert excinfo.value.module == "crash"
    assert isinstance(excinfo.value.__cause__, KeyError)


@pytest.mark.anyio
async def test_plugin_failure_is_reported_as_crash(registry, router, sink) -> None:
    executed: list[str] = []

    def broken(ctx):
        raise RuntimeError("db down")

    await registry.register(
        command_module(
            name="stats",
            type="interactive",
            plugins=[control_plugin(broken, name="broken")],
            execute=lambda ctx, args: executed.append("stats"),
        )
    )

    outcome = await router.handle(slash_event("stats"))

    assert isinstance(outcome, Crashed)
    assert isinstance(outcome.error, PluginFailed)
    assert outcome.error.plugin == "broken"
    assert sink.payloads == [FAILURE]
    assert executed == []


@pytest.mark.anyio
async def test_unknown_command_gets_unknown_reply(router, sink) -> None:
    outcome = await router.handle(text_event("nope"))

    assert isinstance(outcome, NotFound)
    assert outcome.name == "nope"
    assert outcome.kind == "text_message"
    assert sink.payloads == [UNKNOWN]


@pytest.mark.anyio
async def test_kind_must_match_module_type(registry, router, sink) -> None:
    await registry.register(
        command_module(name="settings", type="text", execute=_ping)
    )

    outcome = await router.handle(slash_event("settings"))

    assert isinstance(outcome, NotFound)
    assert sink.payloads == [UNKNOWN]


@pytest.mark.anyio
async def test_stop_without_payload_sends_nothing(registry, router, sink) -> None:
    await registry.register(
        command_module(
            name="quiet",
            type="text",
            plugins=[control_plugin(lambda ctx: controller.stop())],
            execute=_ping,
        )
    )

    outcome = await router.handle(text_event("quiet"))

    assert isinstance(outcome, ShortCircuited)
    assert outcome.has_payload is False
    assert sink.sent == []


@pytest.mark.anyio
async def test_none_result_sends_nothing(registry, router, sink) -> None:
    await registry.register(
        command_module(name="noop", type="text", execute=lambda ctx, args: None)
    )

    outcome = await router.handle(text_event("noop"))

    assert isinstance(outcome, Executed)
    assert sink.sent == []


@pytest.mark.anyio
async def test_interaction_args_are_options(registry, router, sink) -> None:
    def greet(ctx, args):
        assert ctx.is_interaction
        return f"hi {args.options['who']}"

    await registry.register(
        command_module(name="greet", type="both", execute=greet)
    )

    await router.handle(slash_event("greet", {"who": "ada"}))

    assert sink.payloads == ["hi ada"]


@pytest.mark.anyio
async def test_button_routes_to_button_module(registry, router, sink) -> None:
    await registry.register(
        command_module(
            name="confirm", type="button", execute=lambda ctx, args: "confirmed"
        )
    )

    await router.handle(button_event("confirm"))

    assert sink.payloads == ["confirmed"]


@pytest.mark.anyio
async def test_plugins_share_state_with_execute(registry, router, sink) -> None:
    def resolve_level(ctx):
        ctx.state["level"] = "mod"
        return controller.next()

    await registry.register(
        command_module(
            name="whoami",
            type="text",
            plugins=[control_plugin(resolve_level)],
            execute=lambda ctx, args: ctx.state["level"],
        )
    )

    await router.handle(text_event("whoami"))

    assert sink.payloads == ["mod"]


@pytest.mark.anyio
async def test_execute_replying_directly_suppresses_result(
    registry, router, sink
) -> None:
    async def execute(ctx, args):
        await ctx.reply.send(ctx, "manual")
        ctx.replied = True
        return "ignored"

    await registry.register(command_module(name="m", type="text", execute=execute))

    await router.handle(text_event("m"))

    assert sink.payloads == ["manual"]


@pytest.mark.anyio
async def test_activation_events_are_emitted(registry, router, emitter) -> None:
    seen: list[tuple[str, str]] = []
    emitter.on(
        "module.activate",
        lambda status, payload, module: seen.append((status, module.name)),
    )
    await registry.register(command_module(name="ping", type="text", execute=_ping))
    await registry.register(
        command_module(
            name="deny",
            type="text",
            plugins=[control_plugin(lambda ctx: controller.stop())],
            execute=_ping,
        )
    )

    await router.handle(text_event("ping"))
    await router.handle(text_event("deny"))

    assert seen == [("success", "ping"), ("failure", "deny")]


@pytest.mark.anyio
async def test_per_event_reply_sink_overrides_default(registry, router, sink) -> None:
    other = FakeReplySink()
    await registry.register(command_module(name="ping", type="text", execute=_ping))

    await router.handle(text_event("ping"), other)

    assert other.payloads == ["pong"]
    assert sink.sent == []


@pytest.mark.anyio
async def test_broken_reply_sink_does_not_escape(registry) -> None:
    broken = BrokenReplySink()
    router = EventRouter(registry, make_deps(broken))
    await registry.register(command_module(name="ping", type="text", execute=_ping))

    outcome = await router.handle(text_event("ping"))

    assert isinstance(outcome, Crashed)
    assert isinstance(outcome.error, ConnectionError)
    assert broken.calls == 1


@pytest.mark.parametrize(
    ("payload_cls", "command_type", "other_type"),
    [
        (TextMessage, CommandType.TEXT, CommandType.INTERACTIVE),
        (InteractionCommand, CommandType.INTERACTIVE, CommandType.TEXT),
        (ComponentButton, CommandType.BUTTON, CommandType.SELECT),
        (ComponentSelect, CommandType.SELECT, CommandType.BUTTON),
        (ModalSubmit, CommandType.MODAL, CommandType.BOTH),
        (ContextMenuUser, CommandType.CONTEXT_USER, CommandType.CONTEXT_MESSAGE),
        (ContextMenuMessage, CommandType.CONTEXT_MESSAGE, CommandType.CONTEXT_USER),
        (ScheduledTick, CommandType.SCHEDULED, CommandType.EXTERNAL),
        (ExternalEvent, CommandType.EXTERNAL, CommandType.SCHEDULED),
    ],
)
@pytest.mark.anyio
async def test_every_payload_kind_reaches_its_module_type(
    registry, router, sink, payload_cls, command_type, other_type
) -> None:
    await registry.register(
        command_module(
            name="target",
            type=command_type,
            execute=lambda ctx, args: f"hit {ctx.kind}",
        )
    )
    await registry.register(
        command_module(
            name="elsewhere", type=other_type, execute=lambda ctx, args: "wrong"
        )
    )

    hit = await router.handle(
        payload_cls(name="target", envelope=Envelope(source_id=10, author_id=1))
    )
    miss = await router.handle(
        payload_cls(name="elsewhere", envelope=Envelope(source_id=10, author_id=1))
    )

    assert isinstance(hit, Executed)
    assert isinstance(miss, NotFound)
    assert hit.module.type is command_type
    assert sink.payloads == [f"hit {miss.kind}", UNKNOWN]


@pytest.mark.anyio
async def test_select_modal_and_context_menu_args(registry, router, sink) -> None:
    await registry.register(
        command_module(
            name="roles",
            type="select",
            execute=lambda ctx, args: ",".join(ctx.payload.values),
        )
    )
    await registry.register(
        command_module(
            name="report",
            type="modal",
            execute=lambda ctx, args: args.options["why"],
        )
    )
    await registry.register(
        command_module(
            name="warn",
            type="context_user",
            execute=lambda ctx, args: f"warned {ctx.payload.target_user_id}",
        )
    )
    envelope = Envelope(source_id=10, author_id=1)

    await router.handle(
        ComponentSelect(name="roles", envelope=Envelope(10, 1, ("mod", "dj")))
    )
    await router.handle(
        ModalSubmit(name="report", envelope=Envelope(10, 1, {"why": "spam"}))
    )
    await router.handle(ContextMenuUser(name="warn", envelope=Envelope(10, 1, 77)))
    await router.handle(ContextMenuUser(name="roles", envelope=envelope))

    assert sink.payloads == ["mod,dj", "spam", "warned 77", UNKNOWN]


@pytest.mark.anyio
async def test_external_event_module_receives_emitted_args(
    registry, router, sink
) -> None:
    await registry.register(
        event_module(
            name="member_join",
            execute=lambda ctx, args: f"welcome {args.options[0]}",
        )
    )

    outcome = await router.handle(
        ExternalEvent(
            name="member_join", envelope=Envelope("gateway", None, ("ada",))
        )
    )

    assert isinstance(outcome, Executed)
    assert sink.payloads == ["welcome ada"]


@pytest.mark.parametrize(
    "payload",
    [
        object(),
        "!ping",
        TextMessage(name="ping", envelope=None),  # type: ignore[arg-type]
    ],
)
@pytest.mark.anyio
async def test_malformed_payload_is_contained(
    registry, router, sink, emitter, payload
) -> None:
    errors: list[Exception] = []
    emitter.on("error", errors.append)
    await registry.register(command_module(name="ping", type="text", execute=_ping))

    outcome = await router.handle(payload)

    assert isinstance(outcome, Crashed)
    assert errors == [outcome.error]
    assert sink.sent == []

    await router.handle(text_event("ping"))

    assert sink.payloads == ["pong"]


@pytest.mark.anyio
async def test_handle_keeps_context_bound_by_the_caller(registry, router) -> None:
    seen: list[dict] = []

    def execute(ctx, args):
        seen.append(structlog.contextvars.get_contextvars())

    await registry.register(command_module(name="ctx", type="text", execute=execute))
    structlog.contextvars.bind_contextvars(request_id="abc")
    try:
        await router.handle(text_event("ctx", author_id=5))
        after = structlog.contextvars.get_contextvars()
    finally:
        structlog.contextvars.clear_contextvars()

    assert seen[0]["request_id"] == "abc"
    assert seen[0]["name"] == "ctx"
    assert seen[0]["author_id"] == 5
    assert after == {"request_id": "abc"}
