"""
Observatory - discovery tracking engine for hidden achievements.

Tracks a visitor's discoveries across sessions, persists them with
versioned schema migration, resolves unlockable and hintable content from a
static knowledge graph, and notifies decoupled subscribers over a typed
event bus.
"""

from .config import ObservatoryConfig
from .discovery import (
    DiscoveryState,
    DiscoveryStore,
    EventBus,
    KnowledgeGraph,
    KnowledgeNode,
    Topic,
    load_knowledge_graph,
)
from .engine import DiscoveryEngine, create_engine
from .exceptions import (
    CorruptPersistedStateError,
    KnowledgeGraphConfigError,
    ObservatoryError,
    StorageUnavailableError,
)

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("observatory-discovery")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable

__all__ = [
    "CorruptPersistedStateError",
    "DiscoveryEngine",
    "DiscoveryState",
    "DiscoveryStore",
    "EventBus",
    "KnowledgeGraph",
    "KnowledgeGraphConfigError",
    "KnowledgeNode",
    "ObservatoryConfig",
    "ObservatoryError",
    "StorageUnavailableError",
    "Topic",
    "create_engine",
    "load_knowledge_graph",
]
