"""
Tests for the typed event bus.

Tests cover:
- Registration order and fan-out to multiple handlers
- Unsubscribe semantics
- Handler failure isolation
- Re-entrant emission and (un)subscription during dispatch
- Payload validation against the topic's model
"""

import logging

import pytest

from observatory.discovery.events import (
    TOPIC_PAYLOADS,
    DiscoveryPayload,
    EventBus,
    GameCompletePayload,
    StateChangedPayload,
    Topic,
    VisitPayload,
)


DISCOVERY = {"id": "star:first-click", "category": "star", "label": "First Light"}


class TestDispatch:
    """Tests for basic emit/listen behaviour."""

    def test_handlers_run_in_registration_order(self):
        """Every handler runs, in the order registered."""
        bus = EventBus()
        calls = []
        bus.listen(Topic.DISCOVERY, lambda p: calls.append("first"))
        bus.listen(Topic.DISCOVERY, lambda p: calls.append("second"))
        bus.listen(Topic.DISCOVERY, lambda p: calls.append("third"))

        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert calls == ["first", "second", "third"]

    def test_handler_receives_typed_payload(self):
        """Mappings are validated into the topic's payload model."""
        bus = EventBus()
        received = []
        bus.listen(Topic.DISCOVERY, received.append)

        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert len(received) == 1
        assert isinstance(received[0], DiscoveryPayload)
        assert received[0].id == "star:first-click"
        assert received[0].label == "First Light"

    def test_camel_case_payload_keys(self):
        """Payload mappings may use the wire (camelCase) field names."""
        bus = EventBus()
        received = []
        bus.listen(Topic.VISIT, received.append)

        bus.emit(Topic.VISIT, {"count": 2, "isFirstVisit": False})

        assert received[0].count == 2
        assert received[0].is_first_visit is False

    def test_topics_are_independent(self):
        """Handlers only see their own topic."""
        bus = EventBus()
        discoveries = []
        visits = []
        bus.listen(Topic.DISCOVERY, discoveries.append)
        bus.listen(Topic.VISIT, visits.append)

        bus.emit(Topic.VISIT, VisitPayload(count=1, is_first_visit=True))

        assert discoveries == []
        assert len(visits) == 1

    def test_string_topic_accepted(self):
        """Topics may be given by their string value."""
        bus = EventBus()
        received = []
        bus.listen("audio-toggle", received.append)

        bus.emit("audio-toggle", {"enabled": True})

        assert received[0].enabled is True

    def test_emit_without_handlers(self):
        """Emitting with no handlers is a no-op."""
        bus = EventBus()
        bus.emit(Topic.LOOP_RESET, {"loopCount": 1})

    def test_no_buffering(self):
        """Handlers registered after an emit never see it."""
        bus = EventBus()
        bus.emit(Topic.DISCOVERY, DISCOVERY)

        late = []
        bus.listen(Topic.DISCOVERY, late.append)

        assert late == []

    def test_every_topic_has_payload_model(self):
        """Each topic maps to a payload model."""
        assert set(TOPIC_PAYLOADS) == set(Topic)


class TestUnsubscribe:
    """Tests for the unsubscribe function returned by listen."""

    def test_unsubscribe_removes_handler(self):
        bus = EventBus()
        calls = []
        unsubscribe = bus.listen(Topic.DISCOVERY, calls.append)

        unsubscribe()
        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert calls == []
        assert bus.listener_count(Topic.DISCOVERY) == 0

    def test_unsubscribe_removes_only_its_registration(self):
        """Registering the same callable twice gives independent registrations."""
        bus = EventBus()
        calls = []
        first = bus.listen(Topic.DISCOVERY, calls.append)
        bus.listen(Topic.DISCOVERY, calls.append)

        first()
        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert len(calls) == 1
        assert bus.listener_count(Topic.DISCOVERY) == 1

    def test_unsubscribe_twice_is_harmless(self):
        bus = EventBus()
        unsubscribe = bus.listen(Topic.DISCOVERY, lambda p: None)

        unsubscribe()
        unsubscribe()

        assert bus.listener_count(Topic.DISCOVERY) == 0

    def test_clear(self):
        bus = EventBus()
        bus.listen(Topic.DISCOVERY, lambda p: None)
        bus.listen(Topic.VISIT, lambda p: None)

        bus.clear()

        assert bus.listener_count(Topic.DISCOVERY) == 0
        assert bus.listener_count(Topic.VISIT) == 0


class TestIsolation:
    """Tests for handler failure isolation."""

    def test_throwing_handler_does_not_block_siblings(self, caplog):
        """A failing handler is logged; the next handler still runs."""
        bus = EventBus()
        calls = []

        def broken(payload):
            raise RuntimeError("render layer exploded")

        bus.listen(Topic.DISCOVERY, broken)
        bus.listen(Topic.DISCOVERY, calls.append)

        with caplog.at_level(logging.ERROR, logger="observatory"):
            bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert len(calls) == 1
        assert "render layer exploded" in caplog.text

    def test_emit_returns_normally_when_all_handlers_fail(self):
        bus = EventBus()

        def broken(payload):
            raise ValueError("boom")

        bus.listen(Topic.DISCOVERY, broken)
        bus.listen(Topic.DISCOVERY, broken)

        bus.emit(Topic.DISCOVERY, DISCOVERY)


class TestReentrancy:
    """Tests for nested emits and registry changes during dispatch."""

    def test_nested_emit(self):
        """A handler can emit on another topic; nested dispatch completes first."""
        bus = EventBus()
        order = []

        def on_discovery(payload):
            order.append("discovery-start")
            bus.emit(
                Topic.STATE_CHANGED,
                StateChangedPayload(discoveries=(payload.id,), total_count=1),
            )
            order.append("discovery-end")

        bus.listen(Topic.DISCOVERY, on_discovery)
        bus.listen(Topic.STATE_CHANGED, lambda p: order.append("state-changed"))

        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert order == ["discovery-start", "state-changed", "discovery-end"]

    def test_handler_unsubscribing_itself(self):
        """Self-removal during dispatch does not skip the next handler."""
        bus = EventBus()
        calls = []
        unsubscribe = None

        def once(payload):
            calls.append("once")
            unsubscribe()

        unsubscribe = bus.listen(Topic.DISCOVERY, once)
        bus.listen(Topic.DISCOVERY, lambda p: calls.append("always"))

        bus.emit(Topic.DISCOVERY, DISCOVERY)
        bus.emit(Topic.DISCOVERY, DISCOVERY)

        assert calls == ["once", "always", "always"]

    def test_handler_registered_during_dispatch_waits_for_next_emit(self):
        bus = EventBus()
        calls = []

        def register(payload):
            calls.append("register")
            bus.listen(Topic.DISCOVERY, lambda p: calls.append("late"))

        bus.listen(Topic.DISCOVERY, register)

        bus.emit(Topic.DISCOVERY, DISCOVERY)
        assert calls == ["register"]


class TestPayloadValidation:
    """Tests for payload type checking at the emit site."""

    def test_wrong_payload_model_raises(self):
        bus = EventBus()
        with pytest.raises(TypeError):
            bus.emit(Topic.DISCOVERY, VisitPayload(count=1, is_first_visit=True))

    def test_invalid_mapping_raises(self):
        bus = EventBus()
        with pytest.raises(ValueError):
            bus.emit(Topic.GAME_COMPLETE, {"gameId": "star-catcher"})

    def test_unknown_topic_raises(self):
        bus = EventBus()
        with pytest.raises(ValueError):
            bus.emit("supernova", {})

    def test_payloads_are_frozen(self):
        payload = GameCompletePayload(game_id="gravity-hop", score=42)
        with pytest.raises(Exception):
            payload.score = 0
