"""Unit tests for the concept graph arena."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dualmem.brain.hippocampus import ConceptGraph
from dualmem.domain.models import EdgeKind, KnowledgeNode, NodeKind

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_node(node_id: str, embedding: list[float] | None = None) -> KnowledgeNode:
    return KnowledgeNode(
        id=node_id,
        kind=NodeKind.CONCEPT,
        name=node_id,
        embedding=embedding or [],
        created_at=NOW,
        last_accessed=NOW,
    )


@pytest.fixture
def graph() -> ConceptGraph:
    graph = ConceptGraph()
    for node_id in ("a", "b", "c", "d"):
        graph.add_node(make_node(node_id))
    return graph


class TestEdges:
    def test_add_edge(self, graph):
        """Edges connect existing nodes."""
        edge = graph.add_edge("a", "b", EdgeKind.USES)

        assert edge is not None
        assert edge.id.startswith("edge:")
        assert graph.edges_of("a") == [edge]
        assert graph.edges_of("b") == [edge]

    def test_add_edge_missing_endpoint(self, graph):
        """An edge to a missing node is not created."""
        assert graph.add_edge("a", "zzz", EdgeKind.USES) is None
        assert graph.edges == {}

    def test_remove_node_drops_edges(self, graph):
        """Removing a node removes its edges from both endpoints."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("c", "a", EdgeKind.DEPENDS_ON)

        removed = graph.remove_node("a")

        assert removed == 2
        assert "a" not in graph
        assert graph.edges == {}
        assert graph.edges_of("b") == []

    def test_remove_missing_node(self, graph):
        """Removing an unknown node is a no-op."""
        assert graph.remove_node("zzz") == 0
        assert len(graph) == 4

    def test_repoint_edges(self, graph):
        """Edges move to the new node; self-loops are dropped."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("a", "c", EdgeKind.USES)

        moved = graph.repoint_edges("a", "b")

        assert moved == 1
        edges = graph.edges_of("b")
        assert len(edges) == 1
        assert edges[0].source_id == "b"
        assert edges[0].target_id == "c"
        assert graph.edges_of("a") == []


class TestTraversal:
    def test_related_both_directions(self, graph):
        """Traversal follows edges regardless of direction."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("c", "a", EdgeKind.DEPENDS_ON)

        related = {r.node.id: r.depth for r in graph.related("a", max_depth=1)}

        assert related == {"b": 1, "c": 1}

    def test_related_depth_limit(self, graph):
        """Nodes beyond max_depth are not returned."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("b", "c", EdgeKind.USES)
        graph.add_edge("c", "d", EdgeKind.USES)

        related = {r.node.id: r.depth for r in graph.related("a", max_depth=2)}

        assert related == {"b": 1, "c": 2}

    def test_related_shallowest_depth_once(self, graph):
        """A node reachable by two paths appears once, at its shallowest depth."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("b", "c", EdgeKind.USES)
        graph.add_edge("a", "c", EdgeKind.USES)

        related = graph.related("a", max_depth=3)

        assert sorted((r.node.id, r.depth) for r in related) == [("b", 1), ("c", 1)]

    def test_related_excludes_start(self, graph):
        """Cycles never return the start node."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.add_edge("b", "a", EdgeKind.USES)

        assert [r.node.id for r in graph.related("a")] == ["b"]

    def test_related_unknown_node(self, graph):
        """Traversal from an unknown node is empty."""
        assert graph.related("zzz") == []


class TestClusters:
    def test_similar_nodes_cluster(self):
        """Nodes above the threshold share a cluster; singletons are dropped."""
        graph = ConceptGraph()
        graph.add_node(make_node("a", [1.0, 0.0, 0.0, 0.0]))
        graph.add_node(make_node("b", [0.99, 0.01, 0.0, 0.0]))
        graph.add_node(make_node("c", [0.0, 1.0, 0.0, 0.0]))

        clusters = graph.rebuild_clusters(0.9)

        assert len(clusters) == 1
        assert clusters[0].id == "cluster:0"
        assert clusters[0].node_ids == ["a", "b"]
        assert clusters[0].coherence > 0.99
        assert len(clusters[0].centroid) == 4

    def test_nodes_without_embedding_ignored(self, graph):
        """Nodes with no embedding never cluster."""
        assert graph.rebuild_clusters(0.5) == []

    def test_clear(self, graph):
        """Clear empties nodes, edges and clusters."""
        graph.add_edge("a", "b", EdgeKind.USES)
        graph.clear()

        assert len(graph) == 0
        assert graph.edges == {}
        assert graph.clusters == {}
