"""
Discovery engine context object.

Wires one event bus, knowledge graph, state store, loop clock and
time-of-day monitor together from an ObservatoryConfig. The engine is built
once at startup and passed by reference to every consumer; there is no
module-level global state.

Usage:
    engine = create_engine(ObservatoryConfig.from_env())
    engine.bus.listen(Topic.DISCOVERY, on_discovery)
    engine.start()
    engine.store.increment_star_clicks()
    hints = engine.graph.get_hintable_nodes(engine.store.get_state().discoveries)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .clock.loop import LoopClock
from .clock.time_of_day import TimeOfDayMonitor
from .config import ObservatoryConfig
from .discovery.events import EventBus
from .discovery.knowledge_graph import KnowledgeGraph, load_knowledge_graph
from .discovery.models import DiscoveryState
from .discovery.storage import FileStorage, KeyValueStorage, MemoryStorage
from .discovery.store import DiscoveryStore

logger = logging.getLogger("observatory")


@dataclass
class DiscoveryEngine:
    """Shared handle to the discovery engine components.

    Attributes:
        config: Configuration the engine was built from
        bus: Event bus shared by all publishers and subscribers
        graph: Static knowledge graph
        store: Discovery state store
        loop_clock: Fixed-interval loop driver
        time_monitor: Night/day change publisher
    """
    config: ObservatoryConfig
    bus: EventBus
    graph: KnowledgeGraph
    store: DiscoveryStore
    loop_clock: LoopClock
    time_monitor: TimeOfDayMonitor
    _started: bool = field(default=False, repr=False)

    def start(self) -> DiscoveryState:
        """Initialize the store for this session and publish the time of day.

        Returns:
            Snapshot of the state after initialization
        """
        snapshot = self.store.init()
        self.time_monitor.check()
        self._started = True
        return snapshot

    def tick(self) -> int:
        """Advance the session clocks. Returns the number of loops fired."""
        if not self._started:
            return 0
        self.time_monitor.check()
        return self.loop_clock.tick()

    def progress(self) -> int:
        """Current discovery progress percentage."""
        return self.graph.get_progress(self.store.get_state().discoveries)


def create_engine(
    config: Optional[ObservatoryConfig] = None,
    storage: Optional[KeyValueStorage] = None,
    graph: Optional[KnowledgeGraph] = None,
) -> DiscoveryEngine:
    """Build a discovery engine.

    Args:
        config: Engine configuration (defaults to ``ObservatoryConfig()``)
        storage: Storage backend; overrides ``config.storage_dir``
        graph: Knowledge graph; overrides ``config.graph_path``

    Returns:
        A DiscoveryEngine whose store has not been initialized yet

    Raises:
        KnowledgeGraphConfigError: If the configured graph cannot be loaded
    """
    config = config or ObservatoryConfig()

    if storage is None:
        if config.storage_dir is not None:
            storage = FileStorage(config.storage_dir)
        else:
            storage = MemoryStorage()
    if graph is None:
        graph = load_knowledge_graph(config.graph_path)

    bus = EventBus()
    store = DiscoveryStore(
        bus,
        storage=storage,
        storage_key=config.storage_key,
        gated_content_threshold=config.gated_content_threshold,
        graph=graph,
    )
    logger.debug(f"Discovery engine created with {type(storage).__name__}")
    return DiscoveryEngine(
        config=config,
        bus=bus,
        graph=graph,
        store=store,
        loop_clock=LoopClock(store, config.loop_duration_seconds),
        time_monitor=TimeOfDayMonitor(bus, config.night_start_hour, config.night_end_hour),
    )


__all__ = [
    "DiscoveryEngine",
    "create_engine",
]
