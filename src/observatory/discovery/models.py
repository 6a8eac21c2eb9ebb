"""
Data models for discovery tracking.

Key components:
- SCHEMA_VERSION: Current version of the persisted DiscoveryState record
- DiscoveryState: The canonical per-visitor discovery record
- NodeCategory: Fixed enumeration of knowledge node categories
- KnowledgeNode: Static, immutable vertex of the knowledge graph
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Bump together with a new step in migration.MIGRATIONS
SCHEMA_VERSION = 1


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DiscoveryState(BaseModel):
    """
    The visitor's discovery record, persisted as a single document.

    Attribute names are snake_case; the persisted record uses the camelCase
    aliases (visitCount, gamesCompleted, ...). Set-valued fields are lists
    that preserve insertion order and never hold duplicates. Only the
    DiscoveryStore mutates an instance; everything else works on copies.

    Attributes:
        version: Schema version of the record
        discoveries: Discovery ids in the order they were made
        constellations: Names of completed constellations
        games_completed: Ids of completed games
        terminal_commands: Distinct terminal commands in the order first issued
        visit_count: Number of initialized sessions
        first_visit_date: When the visitor was first seen (never changes)
        last_visit_date: Start of the most recent visit
        session_start: Start of the current session
        loop_count: Number of elapsed time loops
        audio_enabled: Whether audio is switched on
        total_clicked_stars: Star clicks counted so far
    """
    model_config = ConfigDict(populate_by_name=True)

    version: int = Field(default=SCHEMA_VERSION, description="Schema version")
    discoveries: list[str] = Field(default_factory=list)
    constellations: list[str] = Field(default_factory=list)
    games_completed: list[str] = Field(default_factory=list, alias="gamesCompleted")
    terminal_commands: list[str] = Field(default_factory=list, alias="terminalCommands")
    visit_count: int = Field(default=0, ge=0, alias="visitCount")
    first_visit_date: datetime = Field(default_factory=utc_now, alias="firstVisitDate")
    last_visit_date: datetime = Field(default_factory=utc_now, alias="lastVisitDate")
    session_start: datetime = Field(default_factory=utc_now, alias="sessionStart")
    loop_count: int = Field(default=0, ge=0, alias="loopCount")
    audio_enabled: bool = Field(default=False, alias="audioEnabled")
    total_clicked_stars: int = Field(default=0, ge=0, alias="totalClickedStars")

    @classmethod
    def defaults(cls, now: Optional[datetime] = None) -> "DiscoveryState":
        """Build a fresh default record with every timestamp set to ``now``."""
        now = now or utc_now()
        return cls(
            first_visit_date=now,
            last_visit_date=now,
            session_start=now,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


class NodeCategory(str, Enum):
    """Category of a knowledge node; also the namespace prefix of its id."""
    STAR = "star"
    CONSTELLATION = "constellation"
    GAME = "game"
    TERMINAL = "terminal"
    LOOP = "loop"
    VISIT = "visit"
    TIME = "time"
    META = "meta"


class KnowledgeNode(BaseModel):
    """
    A vertex of the static knowledge graph.

    Nodes are loaded once at startup and frozen. ``requires`` holds the
    AND-gated prerequisites used for unlock and hint queries. ``unlocks``
    is descriptive only and never consulted when gating.

    Attributes:
        id: Namespaced id of the form "<category>:<slug>"
        label: Display name
        category: Node category
        description: Text shown once discovered
        requires: Prerequisite node ids
        unlocks: Descriptive forward edges
        hint: Teaser shown while the node is hintable
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(pattern=r"^[a-z]+:[a-z0-9][a-z0-9-]*$")
    label: str
    category: NodeCategory
    description: str = ""
    requires: tuple[str, ...] = ()
    unlocks: tuple[str, ...] = ()
    hint: str = ""

    @field_validator("requires", "unlocks")
    @classmethod
    def dedupe_edges(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_namespace(self) -> "KnowledgeNode":
        prefix = self.id.split(":", 1)[0]
        if prefix != self.category.value:
            raise ValueError(
                f"Node id '{self.id}' is not namespaced by its category "
                f"'{self.category.value}'"
            )
        if self.id in self.requires:
            raise ValueError(f"Node '{self.id}' cannot require itself")
        return self


__all__ = [
    "SCHEMA_VERSION",
    "DiscoveryState",
    "KnowledgeNode",
    "NodeCategory",
    "utc_now",
]
