"""Concept graph arena.

Nodes are indexed by id and edges refer to node ids, never to node
objects. A reverse-adjacency index (node id -> edge ids touching it)
makes cascading edge removal on eviction cheap.
"""

from __future__ import annotations

import logging
from collections import deque
from uuid import uuid4

from ...domain.models import (
    ConceptCluster,
    ConceptEdge,
    EdgeKind,
    KnowledgeNode,
    RelatedConcept,
)
from .dynamics import centroid, cosine_similarity

logger = logging.getLogger(__name__)


class ConceptGraph:
    """Arena of knowledge nodes and the edges between them.

    Not thread-safe on its own; callers serialize structural mutation.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, KnowledgeNode] = {}
        self.edges: dict[str, ConceptEdge] = {}
        self.clusters: dict[str, ConceptCluster] = {}
        self._adjacency: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    # =========================================================================
    # Nodes
    # =========================================================================

    def add_node(self, node: KnowledgeNode) -> None:
        self.nodes[node.id] = node
        self._adjacency.setdefault(node.id, set())

    def get_node(self, node_id: str) -> KnowledgeNode | None:
        return self.nodes.get(node_id)

    def remove_node(self, node_id: str) -> int:
        """Remove a node and every edge touching it.

        Returns:
            Number of edges removed along with the node.
        """
        if node_id not in self.nodes:
            return 0
        del self.nodes[node_id]
        edge_ids = self._adjacency.pop(node_id, set())
        for edge_id in list(edge_ids):
            self._drop_edge(edge_id)
        for cluster in self.clusters.values():
            if node_id in cluster.node_ids:
                cluster.node_ids.remove(node_id)
        return len(edge_ids)

    # =========================================================================
    # Edges
    # =========================================================================

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        kind: EdgeKind,
        weight: float = 1.0,
        confidence: float = 0.5,
    ) -> ConceptEdge | None:
        """Connect two existing nodes.

        Returns:
            The new edge, or None if either endpoint does not exist.
        """
        if source_id not in self.nodes or target_id not in self.nodes:
            return None
        edge = ConceptEdge(
            id=f"edge:{uuid4().hex[:12]}",
            source_id=source_id,
            target_id=target_id,
            kind=kind,
            weight=weight,
            confidence=confidence,
        )
        self.edges[edge.id] = edge
        self._adjacency[source_id].add(edge.id)
        self._adjacency[target_id].add(edge.id)
        return edge

    def _drop_edge(self, edge_id: str) -> None:
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            return
        for endpoint in (edge.source_id, edge.target_id):
            edges = self._adjacency.get(endpoint)
            if edges is not None:
                edges.discard(edge_id)

    def edges_of(self, node_id: str) -> list[ConceptEdge]:
        return [self.edges[e] for e in sorted(self._adjacency.get(node_id, ()))]

    def repoint_edges(self, old_id: str, new_id: str) -> int:
        """Move every edge of ``old_id`` onto ``new_id``.

        Edges that would become self-loops are dropped.

        Returns:
            Number of edges moved.
        """
        moved = 0
        for edge in self.edges_of(old_id):
            source = new_id if edge.source_id == old_id else edge.source_id
            target = new_id if edge.target_id == old_id else edge.target_id
            self._drop_edge(edge.id)
            if source == target:
                continue
            edge.source_id = source
            edge.target_id = target
            self.edges[edge.id] = edge
            self._adjacency[source].add(edge.id)
            self._adjacency[target].add(edge.id)
            moved += 1
        return moved

    # =========================================================================
    # Traversal
    # =========================================================================

    def related(self, node_id: str, max_depth: int = 2) -> list[RelatedConcept]:
        """Breadth-first traversal up to ``max_depth`` hops.

        Edges are followed in both directions; each node appears once,
        at its shallowest depth. The start node is not included.
        """
        if node_id not in self.nodes or max_depth <= 0:
            return []

        visited = {node_id}
        results: list[RelatedConcept] = []
        queue: deque[tuple[str, int]] = deque([(node_id, 0)])

        while queue:
            current, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for edge in self.edges_of(current):
                neighbor = (
                    edge.target_id if edge.source_id == current else edge.source_id
                )
                if neighbor in visited or neighbor not in self.nodes:
                    continue
                visited.add(neighbor)
                results.append(
                    RelatedConcept(
                        node=self.nodes[neighbor], depth=depth + 1, via_edge=edge.id
                    )
                )
                queue.append((neighbor, depth + 1))

        return results

    # =========================================================================
    # Clusters
    # =========================================================================

    def rebuild_clusters(self, threshold: float) -> list[ConceptCluster]:
        """Greedy clustering of nodes by embedding similarity.

        Each unclustered node (in id order) seeds a cluster and absorbs
        every later unclustered node whose similarity to the seed is at
        least ``threshold``. Singletons are not kept.
        """
        candidates = [n for _, n in sorted(self.nodes.items()) if n.embedding]
        used: set[str] = set()
        clusters: dict[str, ConceptCluster] = {}

        for seed in candidates:
            if seed.id in used:
                continue
            members = [seed]
            used.add(seed.id)
            for other in candidates:
                if other.id in used:
                    continue
                if cosine_similarity(seed.embedding, other.embedding) >= threshold:
                    members.append(other)
                    used.add(other.id)
            if len(members) < 2:
                continue

            cluster_id = f"cluster:{len(clusters)}"
            clusters[cluster_id] = ConceptCluster(
                id=cluster_id,
                node_ids=[m.id for m in members],
                centroid=centroid([m.embedding for m in members]),
                coherence=self._coherence(members),
            )

        self.clusters = clusters
        logger.debug(f"Rebuilt {len(clusters)} concept clusters")
        return list(clusters.values())

    @staticmethod
    def _coherence(members: list[KnowledgeNode]) -> float:
        """Mean pairwise cosine similarity of member embeddings."""
        sims = [
            cosine_similarity(a.embedding, b.embedding)
            for i, a in enumerate(members)
            for b in members[i + 1 :]
        ]
        return sum(sims) / len(sims) if sims else 0.0

    def clear(self) -> None:
        self.nodes.clear()
        self.edges.clear()
        self.clusters.clear()
        self._adjacency.clear()
