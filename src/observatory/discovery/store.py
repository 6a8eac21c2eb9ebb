"""
Persistent, versioned discovery state store.

The DiscoveryStore is the only writer of DiscoveryState. Every mutation
follows the same sequence: check for a no-op, apply in memory, persist the
full record under a single key, then emit on the event bus. Milestones
(first star click, first terminal command, first loop, each constellation
and completed game, returning visits) cascade into ``record_discovery``,
which is idempotent, so repeating a cascade never duplicates anything.

Storage failures never reach the caller: reads fall back to defaults and
writes degrade to in-memory operation, with a warning logged either way.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from ..config import DEFAULT_STORAGE_KEY
from ..exceptions import CorruptPersistedStateError, StorageUnavailableError
from .events import (
    AudioTogglePayload,
    ConstellationCompletePayload,
    DiscoveryPayload,
    EventBus,
    GameCompletePayload,
    LoopResetPayload,
    StateChangedPayload,
    TerminalCommandPayload,
    Topic,
    VisitPayload,
)
from .knowledge_graph import KnowledgeGraph
from .migration import migrate, parse_record, record_version
from .models import SCHEMA_VERSION, DiscoveryState, NodeCategory, utc_now
from .storage import KeyValueStorage, MemoryStorage

logger = logging.getLogger("observatory")

# Milestone discovery ids recorded by cascades
FIRST_STAR_CLICK_ID = "star:first-click"
FIRST_TERMINAL_COMMAND_ID = "terminal:first-command"
FIRST_LOOP_ID = "loop:first-reset"
RETURNING_VISIT_ID = "visit:returning"


class DiscoveryStore:
    """
    Owns the canonical DiscoveryState for one session.

    Create one store at startup, call ``init()`` once, then share the
    instance with every component that records or reads discoveries.
    Snapshots returned by ``init()`` and ``get_state()`` are deep copies;
    changing them has no effect on the store.

    Attributes:
        bus: Event bus notified after every successful mutation
        storage: Durable key-value storage
        storage_key: Key under which the record is persisted
        gated_content_threshold: Default threshold for gated content checks
    """

    def __init__(
        self,
        bus: EventBus,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        gated_content_threshold: int = 10,
        graph: Optional[KnowledgeGraph] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the store. Nothing is loaded until ``init()``.

        Args:
            bus: Event bus to emit on
            storage: Durable storage (defaults to in-memory storage)
            storage_key: Storage key for the serialized record
            gated_content_threshold: Default for ``can_access_gated_content``
            graph: Knowledge graph used to label milestone discoveries
            clock: Returns the current timezone-aware time
        """
        self.bus = bus
        self.storage = storage if storage is not None else MemoryStorage()
        self.storage_key = storage_key
        self.gated_content_threshold = gated_content_threshold
        self._graph = graph
        self._clock = clock
        self._state = DiscoveryState.defaults(clock())
        self._initialized = False

    @property
    def initialized(self) -> bool:
        """Whether ``init()`` has run for this session."""
        return self._initialized

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> DiscoveryState:
        """
        Load (or create) the state and start a new visit.

        Loads the persisted record, migrating it if needed, bumps the visit
        count, stamps the visit and session start times, persists, and emits
        a "visit" event. Return visits also record the returning-visitor
        discovery.

        Returns:
            Snapshot of the state after initialization
        """
        if self._initialized:
            logger.warning("DiscoveryStore.init() called more than once this session")

        now = self._clock()
        self._state = self._load(now)
        self._state.visit_count += 1
        self._state.last_visit_date = now
        self._state.session_start = now
        self._initialized = True
        self._save()

        count = self._state.visit_count
        logger.info(f"Discovery state initialized: visit #{count}, "
                    f"{len(self._state.discoveries)} discoveries")
        self.bus.emit(Topic.VISIT, VisitPayload(count=count, is_first_visit=count == 1))

        if count > 1:
            self.record_discovery(
                RETURNING_VISIT_ID,
                NodeCategory.VISIT.value,
                self._label_for(RETURNING_VISIT_ID, "Return visitor"),
            )

        return self.get_state()

    def get_state(self) -> DiscoveryState:
        """Return a deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def reset(self) -> None:
        """Restore defaults and persist them. Intended for tests and debugging."""
        self._state = DiscoveryState.defaults(self._clock())
        self._save()
        logger.info("Discovery state reset to defaults")

    # ------------------------------------------------------------------
    # Discoveries
    # ------------------------------------------------------------------

    def record_discovery(self, discovery_id: str, category: str, label: str) -> bool:
        """
        Record a discovery if it is new.

        Emits "discovery" and then "state-changed" after persisting.

        Args:
            discovery_id: Namespaced discovery id
            category: Discovery category
            label: Display label

        Returns:
            True if the discovery was new, False if it was already recorded
        """
        if discovery_id in self._state.discoveries:
            logger.debug(f"Discovery '{discovery_id}' already recorded")
            return False

        if self._graph is not None and discovery_id not in self._graph:
            logger.warning(f"Discovery '{discovery_id}' is not a knowledge graph node")

        self._state.discoveries.append(discovery_id)
        self._save()
        logger.info(f"New discovery: '{discovery_id}' ({label})")

        self.bus.emit(
            Topic.DISCOVERY,
            DiscoveryPayload(id=discovery_id, category=category, label=label),
        )
        self.bus.emit(
            Topic.STATE_CHANGED,
            StateChangedPayload(
                discoveries=tuple(self._state.discoveries),
                total_count=len(self._state.discoveries),
            ),
        )
        return True

    def has_discovery(self, discovery_id: str) -> bool:
        """Check if a discovery has been made."""
        return discovery_id in self._state.discoveries

    def discovery_count(self) -> int:
        """Number of discoveries made."""
        return len(self._state.discoveries)

    def can_access_gated_content(self, threshold: Optional[int] = None) -> bool:
        """Check whether enough discoveries exist to open gated content.

        Args:
            threshold: Required discovery count (defaults to the store's
                configured threshold)
        """
        if threshold is None:
            threshold = self.gated_content_threshold
        return len(self._state.discoveries) >= threshold

    # ------------------------------------------------------------------
    # Domain events
    # ------------------------------------------------------------------

    def record_constellation(self, name: str, star_ids: list[str]) -> bool:
        """Record a completed constellation. Returns True if it was new."""
        if name in self._state.constellations:
            return False

        self._state.constellations.append(name)
        self._save()

        self.bus.emit(
            Topic.CONSTELLATION_COMPLETE,
            ConstellationCompletePayload(name=name, stars=tuple(star_ids)),
        )
        discovery_id = f"{NodeCategory.CONSTELLATION.value}:{name}"
        self.record_discovery(
            discovery_id,
            NodeCategory.CONSTELLATION.value,
            self._label_for(discovery_id, f"Formed {name}"),
        )
        return True

    def record_game_complete(self, game_id: str, score: float) -> bool:
        """Record a completed game. Returns True if it was new."""
        if game_id in self._state.games_completed:
            return False

        self._state.games_completed.append(game_id)
        self._save()

        self.bus.emit(Topic.GAME_COMPLETE, GameCompletePayload(game_id=game_id, score=score))
        discovery_id = f"{NodeCategory.GAME.value}:{game_id}"
        self.record_discovery(
            discovery_id,
            NodeCategory.GAME.value,
            self._label_for(discovery_id, f"Completed {game_id}"),
        )
        return True

    def record_terminal_command(self, command: str, output: str) -> None:
        """
        Record an issued terminal command.

        Only the first occurrence of a command is kept in the history. The
        very first command also records the first-command discovery. The
        "terminal-command" event is emitted for every call, repeated
        commands included.
        """
        if command not in self._state.terminal_commands:
            self._state.terminal_commands.append(command)
            self._save()

            if len(self._state.terminal_commands) == 1:
                self.record_discovery(
                    FIRST_TERMINAL_COMMAND_ID,
                    NodeCategory.TERMINAL.value,
                    self._label_for(FIRST_TERMINAL_COMMAND_ID, "First terminal command"),
                )

        self.bus.emit(
            Topic.TERMINAL_COMMAND,
            TerminalCommandPayload(command=command, output=output),
        )

    def increment_star_clicks(self) -> int:
        """Count a star click. Returns the new total."""
        self._state.total_clicked_stars += 1
        self._save()

        if self._state.total_clicked_stars == 1:
            self.record_discovery(
                FIRST_STAR_CLICK_ID,
                NodeCategory.STAR.value,
                self._label_for(FIRST_STAR_CLICK_ID, "Clicked first star"),
            )
        return self._state.total_clicked_stars

    def toggle_audio(self) -> bool:
        """Flip the audio flag. Returns the new value."""
        self._state.audio_enabled = not self._state.audio_enabled
        self._save()

        self.bus.emit(Topic.AUDIO_TOGGLE, AudioTogglePayload(enabled=self._state.audio_enabled))
        return self._state.audio_enabled

    def increment_loop(self) -> int:
        """Count an elapsed time loop. Returns the new loop count."""
        self._state.loop_count += 1
        self._save()

        self.bus.emit(Topic.LOOP_RESET, LoopResetPayload(loop_count=self._state.loop_count))

        if self._state.loop_count == 1:
            self.record_discovery(
                FIRST_LOOP_ID,
                NodeCategory.LOOP.value,
                self._label_for(FIRST_LOOP_ID, "First time loop"),
            )
        return self._state.loop_count

    def get_session_duration(self) -> float:
        """Seconds elapsed since the current session started."""
        return (self._clock() - self._state.session_start).total_seconds()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _label_for(self, discovery_id: str, fallback: str) -> str:
        if self._graph is not None:
            node = self._graph.get_node(discovery_id)
            if node is not None:
                return node.label
        return fallback

    def _load(self, now: datetime) -> DiscoveryState:
        defaults = DiscoveryState.defaults(now)

        try:
            text = self.storage.get(self.storage_key)
        except (StorageUnavailableError, OSError) as e:
            logger.warning(f"Discovery storage unavailable, starting fresh: {e}")
            return defaults

        if text is None:
            logger.debug(f"No persisted discovery state under '{self.storage_key}', starting fresh")
            return defaults

        try:
            raw = parse_record(text)
        except CorruptPersistedStateError as e:
            logger.warning(f"Discarding corrupt discovery state: {e}")
            return defaults

        version = record_version(raw)
        if version < SCHEMA_VERSION:
            logger.info(f"Migrating discovery state from version {version} to {SCHEMA_VERSION}")
        elif version > SCHEMA_VERSION:
            logger.warning(
                f"Discovery state has newer version {version}; "
                f"keeping fields known to version {SCHEMA_VERSION}"
            )
        return migrate(raw, defaults)

    def _save(self) -> None:
        try:
            self.storage.set(self.storage_key, json.dumps(self._state.to_record()))
        except (StorageUnavailableError, OSError) as e:
            logger.warning(f"Failed to persist discovery state, continuing in memory: {e}")


__all__ = [
    "DiscoveryStore",
    "FIRST_LOOP_ID",
    "FIRST_STAR_CLICK_ID",
    "FIRST_TERMINAL_COMMAND_ID",
    "RETURNING_VISIT_ID",
]
