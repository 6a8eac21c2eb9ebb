"""
Knowledge graph resolver.

Answers unlock, hint and progress queries over a static set of knowledge
nodes and a caller-supplied discovery set. The node set is loaded once
(from the bundled YAML or a configured file) and never mutated; every query
recomputes from the discoveries it is given, so there is no derived state
to go stale.

Semantics:
- Unlocked: every id in ``requires`` has been discovered (AND)
- Hintable: not yet discovered, and ``requires`` is empty or at least one
  requirement has been discovered (OR)
- ``unlocks`` is descriptive only; ``derived_unlocks`` gives the inverse of
  ``requires`` for callers that want the authoritative forward edges
"""

import logging
import math
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from ..exceptions import KnowledgeGraphConfigError
from .models import KnowledgeNode

logger = logging.getLogger("observatory")

DEFAULT_GRAPH_PATH = Path(__file__).parent / "data" / "knowledge_graph.yaml"


class KnowledgeGraph:
    """Stateless queries over an immutable, ordered set of knowledge nodes.

    Example:
        >>> graph = load_knowledge_graph()
        >>> graph.is_unlocked("star:pattern-hint", ["star:first-click"])
        True
        >>> [n.id for n in graph.get_unlocked_by("meta:deep-game")]
        ['game:deep-complete']
    """

    def __init__(self, nodes: Iterable[KnowledgeNode]) -> None:
        """Build a graph from nodes.

        Args:
            nodes: Knowledge nodes in display order

        Raises:
            KnowledgeGraphConfigError: If two nodes share an id
        """
        self._nodes: tuple[KnowledgeNode, ...] = tuple(nodes)
        self._by_id: dict[str, KnowledgeNode] = {}
        duplicates = []
        for node in self._nodes:
            if node.id in self._by_id:
                duplicates.append(node.id)
            self._by_id[node.id] = node
        if duplicates:
            raise KnowledgeGraphConfigError(
                f"Duplicate knowledge node ids: {', '.join(duplicates)}",
                node_ids=duplicates,
            )

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    @property
    def node_ids(self) -> frozenset[str]:
        """Ids of every node in the graph."""
        return frozenset(self._by_id)

    def get_nodes(self) -> list[KnowledgeNode]:
        """All nodes, in definition order."""
        return list(self._nodes)

    def get_node(self, node_id: str) -> Optional[KnowledgeNode]:
        """Look up a node by id. Unknown ids return None."""
        return self._by_id.get(node_id)

    def is_unlocked(self, node_id: str, discoveries: Iterable[str]) -> bool:
        """Check whether every requirement of a node has been discovered.

        Args:
            node_id: Node to check
            discoveries: Discovery ids made so far

        Returns:
            True if all requirements are met (trivially so when there are
            none); False otherwise or when the node is unknown
        """
        node = self.get_node(node_id)
        if node is None:
            return False
        discovered = set(discoveries)
        return all(req in discovered for req in node.requires)

    def get_hintable_nodes(self, discoveries: Iterable[str]) -> list[KnowledgeNode]:
        """Undiscovered nodes with no requirements or at least one met.

        Intentionally weaker than ``is_unlocked`` so a hint appears as soon
        as partial progress exists.
        """
        discovered = set(discoveries)
        return [
            node for node in self._nodes
            if node.id not in discovered
            and (not node.requires or any(req in discovered for req in node.requires))
        ]

    def get_unlocked_by(self, discovery_id: str) -> list[KnowledgeNode]:
        """Nodes that list ``discovery_id`` among their requirements."""
        return [node for node in self._nodes if discovery_id in node.requires]

    def get_discovered_nodes(self, discoveries: Iterable[str]) -> list[KnowledgeNode]:
        """Nodes whose ids are in ``discoveries``, in definition order."""
        discovered = set(discoveries)
        return [node for node in self._nodes if node.id in discovered]

    def derived_unlocks(self, node_id: str) -> list[str]:
        """Forward edges derived from ``requires`` (inverse lookup by id)."""
        return [node.id for node in self.get_unlocked_by(node_id)]

    def get_progress(self, discoveries: Iterable[str]) -> int:
        """Percentage of graph nodes discovered, rounded half up.

        Ids that are not graph nodes do not count. An empty graph reports 0.
        """
        if not self._nodes:
            return 0
        found = len(set(discoveries) & self.node_ids)
        return math.floor(100 * found / len(self._nodes) + 0.5)

    def find_cycle(self) -> Optional[list[str]]:
        """Find a cycle along ``requires`` edges.

        Requirements pointing at unknown ids are ignored here.

        Returns:
            Node ids forming the cycle (first id repeated at the end), or
            None if the graph is acyclic
        """
        visiting: list[str] = []
        on_path: set[str] = set()
        done: set[str] = set()

        def visit(node_id: str) -> Optional[list[str]]:
            visiting.append(node_id)
            on_path.add(node_id)
            for req in self._by_id[node_id].requires:
                if req not in self._by_id or req in done:
                    continue
                if req in on_path:
                    start = visiting.index(req)
                    return visiting[start:] + [req]
                cycle = visit(req)
                if cycle:
                    return cycle
            visiting.pop()
            on_path.discard(node_id)
            done.add(node_id)
            return None

        for node in self._nodes:
            if node.id not in done:
                cycle = visit(node.id)
                if cycle:
                    return cycle
        return None

    def dangling_requirements(self) -> dict[str, list[str]]:
        """Requirements that name ids missing from the graph, per node."""
        dangling: dict[str, list[str]] = {}
        for node in self._nodes:
            missing = [req for req in node.requires if req not in self._by_id]
            if missing:
                dangling[node.id] = missing
        return dangling

    def validate(self) -> None:
        """Reject graphs with cycles or requirements on unknown nodes.

        Raises:
            KnowledgeGraphConfigError: If the graph is not a DAG over its own ids
        """
        dangling = self.dangling_requirements()
        if dangling:
            raise KnowledgeGraphConfigError(
                "Knowledge nodes require unknown ids: "
                + "; ".join(f"{nid} -> {', '.join(reqs)}" for nid, reqs in dangling.items()),
                node_ids=list(dangling),
            )
        cycle = self.find_cycle()
        if cycle:
            raise KnowledgeGraphConfigError(
                f"Knowledge graph requirements form a cycle: {' -> '.join(cycle)}",
                node_ids=cycle[:-1],
            )


def parse_nodes(data: Any) -> list[KnowledgeNode]:
    """Validate a ``{"nodes": [...]}`` mapping into knowledge nodes.

    Raises:
        KnowledgeGraphConfigError: If the mapping or any node is malformed
    """
    if not isinstance(data, dict) or not isinstance(data.get("nodes"), list):
        raise KnowledgeGraphConfigError("Knowledge graph must contain a 'nodes' list")

    nodes = []
    for index, node_data in enumerate(data["nodes"]):
        try:
            nodes.append(KnowledgeNode.model_validate(node_data))
        except ValidationError as e:
            raise KnowledgeGraphConfigError(
                f"Invalid knowledge node at index {index}: {e}",
                details={"index": index},
            ) from e
    return nodes


def load_knowledge_graph(path: Optional[Path] = None, validate: bool = True) -> KnowledgeGraph:
    """Load a knowledge graph from YAML.

    Expected YAML format:
        nodes:
          - id: "star:first-click"
            label: First Light
            category: star
            description: You clicked your first star.
            requires: []
            unlocks: ["star:pattern-hint"]
            hint: The stars are not just decoration.

    Args:
        path: YAML file to load (defaults to the bundled graph)
        validate: Also reject cycles and unknown requirements

    Returns:
        The loaded KnowledgeGraph

    Raises:
        KnowledgeGraphConfigError: If the file is missing, malformed or invalid
    """
    path = Path(path) if path is not None else DEFAULT_GRAPH_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise KnowledgeGraphConfigError(
            f"Failed to read knowledge graph from {path}: {e}",
            details={"path": str(path)},
        ) from e

    graph = KnowledgeGraph(parse_nodes(data))
    if validate:
        graph.validate()
    logger.info(f"Loaded knowledge graph with {len(graph)} nodes from {path}")
    return graph


__all__ = [
    "DEFAULT_GRAPH_PATH",
    "KnowledgeGraph",
    "load_knowledge_graph",
    "parse_nodes",
]
