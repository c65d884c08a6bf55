"""
Event bus - publish/subscribe channel between the core and its observers.

The core only publishes. Listeners (UI panels, the HTTP server's websocket
bridge) subscribe by event name and receive a payload dict.
"""

from typing import Callable


HISTORY_CHANGED = "history:changed"
SHAPE_ADDED = "shape:added"
SHAPE_REMOVED = "shape:removed"
SHAPE_UPDATED = "shape:updated"
DOCUMENT_REORDERED = "document:reordered"
TOOL_CHANGED = "tool:changed"
STYLE_CHANGED = "style:changed"

Listener = Callable[[dict], None]


class EventBus:
    """Synchronous in-process event dispatch."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, callback: Listener):
        """Subscribe to an event."""
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Listener):
        """Unsubscribe; unknown callbacks are ignored."""
        callbacks = self._listeners.get(event)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, payload: dict | None = None):
        """Call each listener in subscription order."""
        # Copy so listeners may unsubscribe while being notified
        for callback in list(self._listeners.get(event, [])):
            callback(payload or {})

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))
