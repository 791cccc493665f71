from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

RESOURCES_CHANGED = "resources:changed"
ENVIRONMENT_RESOLVED = "environment:resolved"


@dataclass(frozen=True, slots=True)
class BridgeEvent:
    name: str
    detail: Any


EventHandler = Callable[[BridgeEvent], None]


class EventBridge(Protocol):
    def add_event_listener(self, event_name: str, handler: EventHandler) -> None: ...

    def remove_event_listener(self, event_name: str, handler: EventHandler) -> None: ...

    def dispatch_event(self, event_name: str, detail: Any) -> None: ...


class LocalEventBridge:
    """In-process event target with best-effort, fire-and-forget delivery."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[EventHandler]] = {}

    def add_event_listener(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._listeners.setdefault(event_name, [])
            if handler not in handlers:
                handlers.append(handler)

    def remove_event_listener(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._listeners.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

    def listener_count(self, event_name: str) -> int:
        with self._lock:
            return len(self._listeners.get(event_name, []))

    def dispatch_event(self, event_name: str, detail: Any) -> None:
        with self._lock:
            handlers = list(self._listeners.get(event_name, []))

        event = BridgeEvent(name=event_name, detail=detail)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.warning("Event handler failed for %s", event_name, exc_info=True)


def subscribe(
    bridge: EventBridge,
    event_name: str,
    callback: Callable[[Any], None] | None,
) -> Callable[[], None]:
    """Listen for `event_name`, handing only the event detail to `callback`.

    Returns a function that removes the listener again.
    """
    if callback is None:
        return lambda: None

    def _handler(event: BridgeEvent) -> None:
        callback(event.detail)

    bridge.add_event_listener(event_name, _handler)
    return lambda: bridge.remove_event_listener(event_name, _handler)
