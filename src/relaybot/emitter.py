"""In-process lifecycle notifications.

Event names used by the core:

* ``module.register`` - ``(status, module)`` with status ``"success"`` or
  ``"failure"``
* ``module.activate`` - ``(status, payload, module)`` after each dispatch
* ``modules.loaded`` - no arguments, once the registry is ready
* ``error`` - ``(exc,)`` for every failure caught by the error boundary
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

type Listener = Callable[..., None]


class Emitter:
    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Listener:
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        for listener in tuple(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "emitter.listener_failed",
                    emitted=event,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
