# src/catch2adapter/runtime/emitter.py

"""
Delivers load and run events to whatever consumer is attached (a CLI
renderer, an IDE bridge, a test).
"""

from collections.abc import Callable

import structlog

from catch2adapter.events import LoadEvent, RunEvent
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.emitter")

LoadListener = Callable[[LoadEvent], None]
RunListener = Callable[[RunEvent], None]


class EventEmitter:
    """Fans events out to listeners in registration order; a failing listener never stops the engine."""

    def __init__(self) -> None:
        self._load_listeners: list[LoadListener] = []
        self._run_listeners: list[RunListener] = []

    def subscribe_load(self, listener: LoadListener) -> Callable[[], None]:
        self._load_listeners.append(listener)
        return lambda: self._load_listeners.remove(listener)

    def subscribe_run(self, listener: RunListener) -> Callable[[], None]:
        self._run_listeners.append(listener)
        return lambda: self._run_listeners.remove(listener)

    def post_load_event(self, event: LoadEvent) -> None:
        for listener in list(self._load_listeners):
            try:
                listener(event)
            except Exception as e:
                log.warning("Load listener failed", event_kind=event.kind.name, error=str(e), exc_info=True)

    def post_run_event(self, event: RunEvent) -> None:
        for listener in list(self._run_listeners):
            try:
                listener(event)
            except Exception as e:
                log.warning("Run listener failed", event_kind=event.kind.name, error=str(e), exc_info=True)


# 🔼⚙️
