"""
Event bus for world-change notifications.

The host publishes scene changes here; the orchestrator subscribes while
enabled and unsubscribes on disable, so the engine never registers hooks
it cannot tear down.

Usage:
    bus = EventBus()
    bus.on(EventType.TOKEN_UPDATED, handler)
    bus.emit(EventType.TOKEN_UPDATED, token_id="t1", changes={"x": 300})

    def handler(event: WorldEvent):
        print(event.data["token_id"])
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """World changes the engine reacts to."""

    # Token events
    TOKEN_CREATED = "token.created"
    TOKEN_UPDATED = "token.updated"
    TOKEN_DELETED = "token.deleted"

    # Scene geometry and lighting
    LIGHT_CHANGED = "light.changed"
    WALL_CHANGED = "wall.changed"
    REGION_CHANGED = "region.changed"
    SCENE_UPDATED = "scene.updated"

    # Actor data
    ACTOR_UPDATED = "actor.updated"
    CONDITION_CHANGED = "actor.condition_changed"

    # Host UI
    CONFIG_OPENED = "config.opened"
    CONFIG_CLOSED = "config.closed"
    CANVAS_READY = "canvas.ready"

    # Narrative action outcomes
    ACTION_RESOLVED = "action.resolved"


@dataclass
class WorldEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type (from EventType enum)
        data: Event-specific payload
        timestamp: Wall-clock time the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[WorldEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners run immediately inside emit(). A failing listener is logged
    and does not stop the others.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[WorldEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._listeners.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_type: EventType, **data) -> WorldEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted WorldEvent (for chaining/testing)
        """
        event = WorldEvent(type=event_type, data=data)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("error in handler for %s", event_type.value)

        return event

    def clear(self) -> None:
        self._listeners.clear()

    def get_history(
        self, event_type: EventType | None = None
    ) -> list[WorldEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType | None = None) -> int:
        if event_type is None:
            return sum(len(h) for h in self._listeners.values())
        return len(self._listeners.get(event_type, []))
