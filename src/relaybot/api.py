"""Stable public API for relaybot modules and plugins."""

from __future__ import annotations

from .app import App, build_app
from .args import (
    ParseFailure,
    parse_bool,
    parse_int,
    to_list,
    to_negative_int,
    to_positive_int,
)
from .boundary import Crashed, ErrorBoundary
from .config import ConfigError
from .context import Args, Context
from .emitter import Emitter
from .errors import (
    ArgumentParseFailure,
    ExecutionThrew,
    InvalidModuleType,
    MalformedModule,
    ModuleRejectedAtInit,
    PluginFailed,
    RegistrationConflict,
    RegistryFrozen,
)
from .ioc import Container, CoreDependencies, ServiceNotFound, make_dependencies
from .logging import get_logger
from .model import (
    CommandType,
    ComponentButton,
    ComponentSelect,
    ContextMenuMessage,
    ContextMenuUser,
    Envelope,
    ExternalEvent,
    InteractionCommand,
    ModalSubmit,
    Payload,
    PayloadKind,
    Reply,
    ScheduledTick,
    TextMessage,
)
from .modules import Module, command_module, event_module, scheduled_task
from .plugins import (
    Next,
    Plugin,
    PluginResult,
    Stop,
    StopWith,
    control_plugin,
    controller,
    init_plugin,
)
from .registry import ModuleRegistry
from .router import (
    DispatchOutcome,
    EventRouter,
    Executed,
    NotFound,
    ParseRejected,
    ShortCircuited,
)
from .settings import RelaybotSettings, load_settings
from .sources import (
    EmitterSource,
    EventSource,
    RawExternalEvent,
    RawInteraction,
    RawMessage,
    RawScheduledTick,
    serve,
)
from .transport import ReplySink

RELAYBOT_API_VERSION = 1

__all__ = [
    "App",
    "Args",
    "ArgumentParseFailure",
    "CommandType",
    "ComponentButton",
    "ComponentSelect",
    "ConfigError",
    "Container",
    "Context",
    "ContextMenuMessage",
    "ContextMenuUser",
    "CoreDependencies",
    "Crashed",
    "DispatchOutcome",
    "Emitter",
    "EmitterSource",
    "Envelope",
    "ErrorBoundary",
    "EventRouter",
    "EventSource",
    "Executed",
    "ExecutionThrew",
    "ExternalEvent",
    "InteractionCommand",
    "InvalidModuleType",
    "MalformedModule",
    "ModalSubmit",
    "Module",
    "ModuleRegistry",
    "ModuleRejectedAtInit",
    "Next",
    "NotFound",
    "ParseFailure",
    "ParseRejected",
    "Payload",
    "PayloadKind",
    "Plugin",
    "PluginFailed",
    "PluginResult",
    "RELAYBOT_API_VERSION",
    "RawExternalEvent",
    "RawInteraction",
    "RawMessage",
    "RawScheduledTick",
    "RegistrationConflict",
    "RegistryFrozen",
    "RelaybotSettings",
    "Reply",
    "ReplySink",
    "ScheduledTick",
    "ServiceNotFound",
    "ShortCircuited",
    "Stop",
    "StopWith",
    "TextMessage",
    "build_app",
    "command_module",
    "control_plugin",
    "controller",
    "event_module",
    "get_logger",
    "init_plugin",
    "load_settings",
    "make_dependencies",
    "parse_bool",
    "parse_int",
    "scheduled_task",
    "serve",
    "to_list",
    "to_negative_int",
    "to_positive_int",
]
