"""
Pytest configuration and fixtures for observatory tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing observatory
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from observatory.discovery.events import EventBus, Topic  # noqa: E402
from observatory.discovery.knowledge_graph import KnowledgeGraph  # noqa: E402
from observatory.discovery.models import KnowledgeNode  # noqa: E402
from observatory.discovery.storage import MemoryStorage  # noqa: E402
from observatory.discovery.store import DiscoveryStore  # noqa: E402


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 14, 21, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class EventRecorder:
    """Subscribes to every topic and records (topic, payload) pairs in order."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[Topic, object]] = []
        for topic in Topic:
            bus.listen(topic, lambda payload, t=topic: self.events.append((t, payload)))

    def topics(self) -> list[Topic]:
        return [topic for topic, _ in self.events]

    def payloads(self, topic: Topic) -> list:
        return [payload for t, payload in self.events if t == topic]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(bus, storage, clock):
    """A store backed by in-memory storage; not yet initialized."""
    return DiscoveryStore(bus, storage=storage, clock=clock)


@pytest.fixture
def abc_graph():
    """A(requires: []), B(requires: [A]), C(requires: [A, B])."""
    return KnowledgeGraph([
        KnowledgeNode(id="star:a", label="A", category="star"),
        KnowledgeNode(id="star:b", label="B", category="star", requires=["star:a"]),
        KnowledgeNode(id="star:c", label="C", category="star", requires=["star:a", "star:b"]),
    ])
