from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from collections.abc import Iterator
from typing import Any

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _level_from_env(default: int) -> int:
    raw = os.environ.get("RELAYBOT_LOG_LEVEL")
    if not raw:
        return default
    return _LEVELS.get(raw.strip().lower(), default)


def setup_logging(*, debug: bool = False, json: bool | None = None) -> None:
    level = _level_from_env(logging.DEBUG if debug else logging.INFO)
    if json is None:
        json = os.environ.get("RELAYBOT_LOG_FORMAT", "").lower() == "json"
    renderer: Any
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


@contextmanager
def dispatch_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` for the duration of one dispatch, restoring prior values."""
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    ):
        yield


@contextmanager
def suppress_logs(level: int = logging.CRITICAL) -> Iterator[None]:
    """Temporarily drop log output below ``level``."""
    previous = structlog.get_config()
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
    try:
        yield
    finally:
        structlog.configure(**previous)
