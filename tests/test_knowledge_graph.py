"""
Tests for the knowledge graph resolver.

Tests KnowledgeNode validation, AND unlock semantics, OR hint semantics,
reverse lookups, progress, cycle detection and YAML loading, including
sanity checks on the bundled graph.
"""

import pytest
import yaml
from pydantic import ValidationError

from observatory.discovery.knowledge_graph import (
    DEFAULT_GRAPH_PATH,
    KnowledgeGraph,
    load_knowledge_graph,
    parse_nodes,
)
from observatory.discovery.models import KnowledgeNode, NodeCategory
from observatory.exceptions import KnowledgeGraphConfigError


def _ids(nodes):
    return [node.id for node in nodes]


class TestKnowledgeNode:
    """Tests for the KnowledgeNode model."""

    def test_defaults(self):
        node = KnowledgeNode(id="loop:first-reset", label="Time Loop", category="loop")
        assert node.category == NodeCategory.LOOP
        assert node.requires == ()
        assert node.unlocks == ()
        assert node.hint == ""

    def test_frozen(self):
        node = KnowledgeNode(id="loop:first-reset", label="Time Loop", category="loop")
        with pytest.raises(ValidationError):
            node.label = "Changed"

    def test_id_must_match_category(self):
        with pytest.raises(ValidationError):
            KnowledgeNode(id="star:orion", label="Orion", category="constellation")

    def test_id_must_be_namespaced(self):
        with pytest.raises(ValidationError):
            KnowledgeNode(id="orion", label="Orion", category="constellation")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            KnowledgeNode(id="comet:halley", label="Halley", category="comet")

    def test_self_requirement_rejected(self):
        with pytest.raises(ValidationError):
            KnowledgeNode(id="star:a", label="A", category="star", requires=["star:a"])

    def test_requirements_deduplicated(self):
        node = KnowledgeNode(
            id="star:b", label="B", category="star", requires=["star:a", "star:a"]
        )
        assert node.requires == ("star:a",)


class TestUnlock:
    """Tests for AND unlock semantics."""

    def test_empty_requires_is_unlocked(self, abc_graph):
        assert abc_graph.is_unlocked("star:a", [])

    def test_partial_requirements(self, abc_graph):
        discoveries = {"star:a"}
        assert abc_graph.is_unlocked("star:b", discoveries)
        assert not abc_graph.is_unlocked("star:c", discoveries)

    def test_all_requirements(self, abc_graph):
        assert abc_graph.is_unlocked("star:c", {"star:a", "star:b"})

    def test_unknown_node_is_locked(self, abc_graph):
        assert not abc_graph.is_unlocked("star:missing", {"star:a"})


class TestHints:
    """Tests for OR hint semantics."""

    def test_nothing_discovered(self, abc_graph):
        assert _ids(abc_graph.get_hintable_nodes(set())) == ["star:a"]

    def test_partial_progress_hints_dependants(self, abc_graph):
        """B has its only requirement met; C has one of two met."""
        assert _ids(abc_graph.get_hintable_nodes({"star:a"})) == ["star:b", "star:c"]

    def test_discovered_nodes_are_not_hinted(self, abc_graph):
        hints = abc_graph.get_hintable_nodes({"star:a", "star:b", "star:c"})
        assert hints == []

    def test_hint_weaker_than_unlock(self, abc_graph):
        discoveries = {"star:a"}
        assert "star:c" in _ids(abc_graph.get_hintable_nodes(discoveries))
        assert not abc_graph.is_unlocked("star:c", discoveries)


class TestLookups:
    """Tests for node lookups and reverse edges."""

    def test_get_nodes_preserves_order(self, abc_graph):
        assert _ids(abc_graph.get_nodes()) == ["star:a", "star:b", "star:c"]

    def test_get_nodes_returns_copy(self, abc_graph):
        nodes = abc_graph.get_nodes()
        nodes.clear()
        assert len(abc_graph.get_nodes()) == 3

    def test_get_node(self, abc_graph):
        assert abc_graph.get_node("star:b").label == "B"

    def test_get_node_unknown_returns_none(self, abc_graph):
        assert abc_graph.get_node("star:nope") is None

    def test_get_unlocked_by(self, abc_graph):
        assert _ids(abc_graph.get_unlocked_by("star:a")) == ["star:b", "star:c"]
        assert _ids(abc_graph.get_unlocked_by("star:b")) == ["star:c"]
        assert abc_graph.get_unlocked_by("star:c") == []

    def test_derived_unlocks(self, abc_graph):
        assert abc_graph.derived_unlocks("star:a") == ["star:b", "star:c"]

    def test_get_discovered_nodes(self, abc_graph):
        nodes = abc_graph.get_discovered_nodes(["star:c", "star:a", "other:x"])
        assert _ids(nodes) == ["star:a", "star:c"]

    def test_duplicate_ids_rejected(self):
        node = KnowledgeNode(id="star:a", label="A", category="star")
        with pytest.raises(KnowledgeGraphConfigError) as exc_info:
            KnowledgeGraph([node, node])
        assert exc_info.value.node_ids == ["star:a"]


class TestProgress:
    """Tests for progress percentage."""

    def _graph(self, size):
        return KnowledgeGraph(
            KnowledgeNode(id=f"star:s{i}", label=f"S{i}", category="star")
            for i in range(size)
        )

    def test_three_of_twelve(self):
        graph = self._graph(12)
        assert graph.get_progress(["star:s0", "star:s1", "star:s2"]) == 25

    def test_unknown_ids_do_not_count(self):
        graph = self._graph(4)
        assert graph.get_progress(["star:s0", "constellation:unknown"]) == 25

    def test_rounds_half_up(self):
        graph = self._graph(8)
        assert graph.get_progress(["star:s0"]) == 13

    def test_complete(self):
        graph = self._graph(3)
        assert graph.get_progress(["star:s0", "star:s1", "star:s2"]) == 100

    def test_empty_graph(self):
        assert KnowledgeGraph([]).get_progress(["star:s0"]) == 0

    def test_monotonic(self, abc_graph):
        discoveries = []
        last = abc_graph.get_progress(discoveries)
        for node_id in ["star:a", "star:b", "star:c"]:
            discoveries.append(node_id)
            progress = abc_graph.get_progress(discoveries)
            assert progress >= last
            last = progress


class TestValidation:
    """Tests for cycle detection and dangling requirements."""

    def test_acyclic(self, abc_graph):
        assert abc_graph.find_cycle() is None
        abc_graph.validate()

    def test_cycle_detected(self):
        graph = KnowledgeGraph([
            KnowledgeNode(id="star:a", label="A", category="star", requires=["star:c"]),
            KnowledgeNode(id="star:b", label="B", category="star", requires=["star:a"]),
            KnowledgeNode(id="star:c", label="C", category="star", requires=["star:b"]),
        ])
        cycle = graph.find_cycle()
        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"star:a", "star:b", "star:c"}
        with pytest.raises(KnowledgeGraphConfigError):
            graph.validate()

    def test_dangling_requirement(self):
        graph = KnowledgeGraph([
            KnowledgeNode(id="star:a", label="A", category="star", requires=["star:ghost"]),
        ])
        assert graph.dangling_requirements() == {"star:a": ["star:ghost"]}
        with pytest.raises(KnowledgeGraphConfigError):
            graph.validate()


class TestLoading:
    """Tests for YAML loading."""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "graph.yaml"
        path.write_text(yaml.safe_dump({
            "nodes": [
                {"id": "game:gravity-hop", "label": "Gravity Hop", "category": "game"},
                {
                    "id": "meta:deep",
                    "label": "Deep",
                    "category": "meta",
                    "requires": ["game:gravity-hop"],
                },
            ]
        }), encoding="utf-8")

        graph = load_knowledge_graph(path)

        assert len(graph) == 2
        assert graph.is_unlocked("meta:deep", ["game:gravity-hop"])

    def test_missing_file(self, tmp_path):
        with pytest.raises(KnowledgeGraphConfigError):
            load_knowledge_graph(tmp_path / "missing.yaml")

    def test_missing_nodes_key(self, tmp_path):
        path = tmp_path / "graph.yaml"
        path.write_text("edges: []\n", encoding="utf-8")
        with pytest.raises(KnowledgeGraphConfigError):
            load_knowledge_graph(path)

    def test_invalid_node_reports_index(self):
        with pytest.raises(KnowledgeGraphConfigError) as exc_info:
            parse_nodes({"nodes": [
                {"id": "star:a", "label": "A", "category": "star"},
                {"id": "star:b", "category": "star"},
            ]})
        assert exc_info.value.details["index"] == 1

    def test_cyclic_file_rejected(self, tmp_path):
        path = tmp_path / "graph.yaml"
        path.write_text(yaml.safe_dump({
            "nodes": [
                {"id": "star:a", "label": "A", "category": "star", "requires": ["star:b"]},
                {"id": "star:b", "label": "B", "category": "star", "requires": ["star:a"]},
            ]
        }), encoding="utf-8")

        with pytest.raises(KnowledgeGraphConfigError):
            load_knowledge_graph(path)
        assert load_knowledge_graph(path, validate=False).find_cycle() is not None


class TestBundledGraph:
    """Sanity checks on the bundled knowledge graph."""

    @pytest.fixture
    def graph(self):
        return load_knowledge_graph()

    def test_default_path_exists(self):
        assert DEFAULT_GRAPH_PATH.exists()

    def test_bundled_graph_is_acyclic(self, graph):
        assert graph.find_cycle() is None
        assert graph.dangling_requirements() == {}

    def test_milestone_nodes_present(self, graph):
        for node_id in [
            "star:first-click",
            "terminal:first-command",
            "loop:first-reset",
            "visit:returning",
            "constellation:orion",
            "game:star-catcher",
        ]:
            assert node_id in graph

    def test_deep_game_requires_three_discoveries(self, graph):
        partial = ["star:first-click", "terminal:first-command"]
        assert not graph.is_unlocked("meta:deep-game", partial)
        assert "meta:deep-game" in _ids(graph.get_hintable_nodes(partial))
        assert graph.is_unlocked("meta:deep-game", partial + ["game:star-catcher"])
