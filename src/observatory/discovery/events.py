"""
Typed publish/subscribe event bus for cross-component communication.

State changes and domain occurrences are published on fixed topics, each
with its own payload model. Subscribers (render, audio, UI layers) register
handlers on the bus and never talk to each other or to storage directly.

Dispatch is synchronous and in registration order. A failing handler is
logged and skipped; it never stops its siblings and never reaches the
emitter. Handlers may emit, listen or unsubscribe while being dispatched.

Usage:
    bus = EventBus()
    unsubscribe = bus.listen(Topic.DISCOVERY, lambda p: print(p.label))
    bus.emit(Topic.DISCOVERY, {"id": "star:first-click", "category": "star",
                               "label": "First Light"})
    unsubscribe()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("observatory")


class Topic(str, Enum):
    """Event bus topics. Each maps to exactly one payload model."""
    DISCOVERY = "discovery"
    CONSTELLATION_COMPLETE = "constellation-complete"
    GAME_COMPLETE = "game-complete"
    TERMINAL_COMMAND = "terminal-command"
    VISIT = "visit"
    TIME_CHANGE = "time-change"
    LOOP_RESET = "loop-reset"
    AUDIO_TOGGLE = "audio-toggle"
    STATE_CHANGED = "state-changed"


class EventPayload(BaseModel):
    """Base for topic payloads. Payloads are immutable once emitted."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class DiscoveryPayload(EventPayload):
    id: str
    category: str
    label: str


class ConstellationCompletePayload(EventPayload):
    name: str
    stars: tuple[str, ...] = ()


class GameCompletePayload(EventPayload):
    game_id: str = Field(alias="gameId")
    score: float


class TerminalCommandPayload(EventPayload):
    command: str
    output: str = ""


class VisitPayload(EventPayload):
    count: int
    is_first_visit: bool = Field(alias="isFirstVisit")


class TimeChangePayload(EventPayload):
    is_night: bool = Field(alias="isNight")
    hour: int = Field(ge=0, le=23)


class LoopResetPayload(EventPayload):
    loop_count: int = Field(alias="loopCount")


class AudioTogglePayload(EventPayload):
    enabled: bool


class StateChangedPayload(EventPayload):
    discoveries: tuple[str, ...]
    total_count: int = Field(alias="totalCount")


TOPIC_PAYLOADS: dict[Topic, type[EventPayload]] = {
    Topic.DISCOVERY: DiscoveryPayload,
    Topic.CONSTELLATION_COMPLETE: ConstellationCompletePayload,
    Topic.GAME_COMPLETE: GameCompletePayload,
    Topic.TERMINAL_COMMAND: TerminalCommandPayload,
    Topic.VISIT: VisitPayload,
    Topic.TIME_CHANGE: TimeChangePayload,
    Topic.LOOP_RESET: LoopResetPayload,
    Topic.AUDIO_TOGGLE: AudioTogglePayload,
    Topic.STATE_CHANGED: StateChangedPayload,
}

Handler = Callable[[Any], None]


class EventBus:
    """In-process registry of per-topic handler lists.

    One bus is created per engine and shared by reference with every
    component that publishes or subscribes. There is no buffering: a handler
    only sees events emitted after it was registered.
    """

    def __init__(self) -> None:
        self._handlers: dict[Topic, list[Handler]] = {topic: [] for topic in Topic}

    def listen(self, topic: Topic | str, handler: Handler) -> Callable[[], None]:
        """Register a handler for a topic.

        The same callable may be registered more than once; each registration
        is independent and is removed only by its own unsubscribe function.

        Args:
            topic: Topic to subscribe to
            handler: Called with the topic's payload model

        Returns:
            A function that removes exactly this registration. Calling it
            more than once is harmless.
        """
        topic = Topic(topic)
        # Wrap so duplicate registrations of one callable stay distinguishable
        def entry(payload: Any) -> None:
            handler(payload)

        self._handlers[topic].append(entry)

        def unsubscribe() -> None:
            handlers = self._handlers[topic]
            if entry in handlers:
                handlers.remove(entry)

        return unsubscribe

    def emit(self, topic: Topic | str, payload: EventPayload | Mapping[str, Any]) -> None:
        """Synchronously deliver a payload to every handler of a topic.

        Mappings are validated into the topic's payload model first, so
        handlers always receive a typed, immutable payload.

        Args:
            topic: Topic to publish on
            payload: Payload model instance or a mapping of its fields

        Raises:
            ValueError: If the topic is unknown or the mapping is invalid
            TypeError: If a payload model of the wrong type is given
        """
        topic = Topic(topic)
        payload = self._coerce_payload(topic, payload)

        # Snapshot so handlers can (un)subscribe during dispatch
        for handler in list(self._handlers[topic]):
            try:
                handler(payload)
            except Exception as e:
                logger.error(
                    f"Error in '{topic.value}' event handler: {e}",
                    exc_info=True,
                )

    def listener_count(self, topic: Topic | str) -> int:
        """Number of handlers currently registered for a topic."""
        return len(self._handlers[Topic(topic)])

    def clear(self) -> None:
        """Remove every registered handler."""
        for handlers in self._handlers.values():
            handlers.clear()

    @staticmethod
    def _coerce_payload(
        topic: Topic,
        payload: EventPayload | Mapping[str, Any],
    ) -> EventPayload:
        model = TOPIC_PAYLOADS[topic]
        if isinstance(payload, model):
            return payload
        if isinstance(payload, EventPayload):
            raise TypeError(
                f"Topic '{topic.value}' expects {model.__name__}, "
                f"got {type(payload).__name__}"
            )
        if isinstance(payload, Mapping):
            return model.model_validate(dict(payload))
        raise TypeError(
            f"Payload for '{topic.value}' must be a mapping or {model.__name__}"
        )


__all__ = [
    "AudioTogglePayload",
    "ConstellationCompletePayload",
    "DiscoveryPayload",
    "EventBus",
    "EventPayload",
    "GameCompletePayload",
    "Handler",
    "LoopResetPayload",
    "StateChangedPayload",
    "TOPIC_PAYLOADS",
    "TerminalCommandPayload",
    "TimeChangePayload",
    "Topic",
    "VisitPayload",
]
