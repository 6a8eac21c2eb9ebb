"""
Discovery engine core.

This package holds the three pieces every other subsystem builds on: the
typed event bus, the persistent versioned state store, and the knowledge
graph resolver.

Key components:
- EventBus / Topic: Synchronous publish/subscribe with per-topic payload models
- DiscoveryStore: Sole writer of DiscoveryState; idempotent, persisted mutations
- DiscoveryState: The persisted discovery record
- KnowledgeGraph: Unlock (AND), hint (OR) and progress queries
- KnowledgeNode / NodeCategory: Static graph vertices
- migrate: Forward-only migration of persisted records
- FileStorage / MemoryStorage: Key-value storage backends
"""

from .events import (
    AudioTogglePayload,
    ConstellationCompletePayload,
    DiscoveryPayload,
    EventBus,
    EventPayload,
    GameCompletePayload,
    LoopResetPayload,
    StateChangedPayload,
    TerminalCommandPayload,
    TimeChangePayload,
    Topic,
    VisitPayload,
)
from .knowledge_graph import DEFAULT_GRAPH_PATH, KnowledgeGraph, load_knowledge_graph
from .migration import migrate, parse_record
from .models import SCHEMA_VERSION, DiscoveryState, KnowledgeNode, NodeCategory
from .storage import FileStorage, KeyValueStorage, MemoryStorage
from .store import DiscoveryStore

__all__ = [
    "AudioTogglePayload",
    "ConstellationCompletePayload",
    "DEFAULT_GRAPH_PATH",
    "DiscoveryPayload",
    "DiscoveryState",
    "DiscoveryStore",
    "EventBus",
    "EventPayload",
    "FileStorage",
    "GameCompletePayload",
    "KeyValueStorage",
    "KnowledgeGraph",
    "KnowledgeNode",
    "LoopResetPayload",
    "MemoryStorage",
    "NodeCategory",
    "SCHEMA_VERSION",
    "StateChangedPayload",
    "TerminalCommandPayload",
    "TimeChangePayload",
    "Topic",
    "VisitPayload",
    "load_knowledge_graph",
    "migrate",
    "parse_record",
]
