"""System 1 Store - fast, approximate, similarity-ranked memory.

Owns the knowledge nodes and concept graph, the pattern library,
command-usage history and the user preference record. It delegates:
- RetrievalDynamics: ranking, eviction scores and decay
- ConceptGraph: node/edge arena, traversal and clustering
- PatternLibrary: code patterns, anti-patterns, practices, templates

The store itself is not thread-safe; the engine serializes structural
mutation with its shared lock.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ...brain.hippocampus import ConceptGraph, RetrievalDynamics, cosine_similarity
from ...brain.hippocampus.dynamics import days_between, lexical_similarity
from ...brain.neocortex import PatternLibrary
from ...config import System1Config
from ..exceptions import CapacityExceededError, NotFoundError, ValidationError
from ..models import (
    AntiPatternMatch,
    CodeExample,
    CodePattern,
    CommandHistory,
    ConceptCluster,
    ConceptEdge,
    EdgeKind,
    KnowledgeNode,
    MemoryEvent,
    MemoryEventKind,
    NodeKind,
    NodeMetadata,
    RelatedConcept,
    SessionRecord,
    UsagePattern,
    UserPreferenceSet,
)

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = frozenset({"id", "kind", "name", "created_at"})

# Sessions scanned for recurring command sequences
USAGE_PATTERN_WINDOW = 20
USAGE_PATTERN_MIN_FREQUENCY = 3

SUGGESTION_WEIGHT_STEP = 0.05


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:40] or "node"


def _deep_merge(base: dict[str, Any], partial: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class System1Store:
    """Fast pattern-matching memory.

    Lookups never raise for "not found"; they return empty results.
    ``add_node`` evicts before it would exceed capacity, so
    :class:`CapacityExceededError` is not expected in normal operation.
    """

    def __init__(
        self,
        config: System1Config | None = None,
        clock: Callable[[], datetime] | None = None,
        dynamics: RetrievalDynamics | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: System 1 settings (read at use time, so updates apply).
            clock: Time source (default: UTC now).
            dynamics: Ranking calculator (default: standard weights).
        """
        self.config = config or System1Config()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.dynamics = dynamics or RetrievalDynamics(
            decay_half_life_days=self.config.decay_half_life_days
        )
        self.graph = ConceptGraph()
        self.patterns = PatternLibrary(
            merge_threshold=self.config.pattern_merge_threshold,
            confidence_floor=self.config.anti_pattern_confidence_floor,
            clock=self._clock,
            seed_defaults=self.config.seed_default_anti_patterns,
        )
        self.sessions: list[SessionRecord] = []
        self.command_history: dict[str, CommandHistory] = {}
        self.usage_patterns: dict[str, UsagePattern] = {}
        self.preferences = UserPreferenceSet()
        self.evictions = 0
        self._last_decay_at = self._clock()

        self._handlers: dict[MemoryEventKind, Callable[[MemoryEvent], bool]] = {
            MemoryEventKind.CODE_GENERATION: self._on_code_generation,
            MemoryEventKind.PATTERN_RECOGNITION: self._on_pattern_recognition,
            MemoryEventKind.LEARNING_UPDATE: self._on_learning_update,
        }

    def _sync_config(self) -> None:
        self.dynamics.decay_half_life_days = self.config.decay_half_life_days
        self.patterns.merge_threshold = self.config.pattern_merge_threshold
        self.patterns.confidence_floor = self.config.anti_pattern_confidence_floor

    # =========================================================================
    # Knowledge nodes
    # =========================================================================

    def _validate_embedding(self, embedding: list[float]) -> None:
        dimension = self.config.embedding_dimension
        if embedding and dimension > 0 and len(embedding) != dimension:
            raise ValidationError(
                f"Embedding dimension mismatch (expected {dimension}, "
                f"got {len(embedding)})"
            )

    def add_node(
        self,
        kind: NodeKind | str,
        name: str,
        content: str = "",
        embedding: list[float] | None = None,
        metadata: NodeMetadata | dict[str, Any] | None = None,
        confidence: float = 0.5,
    ) -> KnowledgeNode:
        """Insert a knowledge node, evicting least-used nodes if full.

        Raises:
            ValidationError: On an unknown kind, bad metadata or a
                wrong-sized embedding.
            CapacityExceededError: If eviction could not make room.
        """
        if not name or not name.strip():
            raise ValidationError("Node name cannot be empty")
        try:
            kind = NodeKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown node kind: {kind}") from e
        embedding = list(embedding or [])
        self._validate_embedding(embedding)

        capacity = self.config.max_knowledge_nodes
        if len(self.graph) >= capacity:
            self._evict_down_to(capacity - 1)
            if len(self.graph) >= capacity:
                raise CapacityExceededError(capacity)

        now = self._clock()
        try:
            if isinstance(metadata, dict):
                metadata = NodeMetadata.model_validate(metadata)
            node = KnowledgeNode(
                id=f"{kind.value}:{_slug(name)}:{uuid4().hex[:8]}",
                kind=kind,
                name=name,
                content=content,
                embedding=embedding,
                confidence=confidence,
                created_at=now,
                last_accessed=now,
                metadata=metadata or NodeMetadata(),
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid knowledge node: {e}") from e

        self.graph.add_node(node)
        logger.debug(f"Added knowledge node {node.id}")
        return node

    def _reinforce(self, node: KnowledgeNode, now: datetime) -> None:
        step = self.config.reinforcement_step
        node.access_count += 1
        node.last_accessed = now
        node.confidence = min(1.0, node.confidence + step)
        node.metadata.relevance = min(1.0, node.metadata.relevance + step)

    def get_node(self, node_id: str) -> KnowledgeNode | None:
        """Fetch a node by id (a read reinforces the node)."""
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        self._reinforce(node, self._clock())
        return node.model_copy(deep=True)

    def update_node(self, node_id: str, **fields: Any) -> KnowledgeNode:
        """Update mutable node fields; nested metadata is merged.

        Raises:
            NotFoundError: If the node does not exist.
            ValidationError: On identity-field changes or invalid values.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            raise NotFoundError("KnowledgeNode", node_id)
        immutable = IDENTITY_FIELDS & fields.keys()
        if immutable:
            raise ValidationError(f"Cannot change identity fields: {sorted(immutable)}")
        if "embedding" in fields:
            self._validate_embedding(list(fields["embedding"] or []))

        data = node.model_dump()
        if isinstance(fields.get("metadata"), dict):
            fields["metadata"] = _deep_merge(data["metadata"], fields["metadata"])
        try:
            updated = KnowledgeNode.model_validate({**data, **fields})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid node update: {e}") from e

        self.graph.nodes[node_id] = updated
        return updated.model_copy(deep=True)

    def remove_node(self, node_id: str) -> bool:
        if node_id not in self.graph:
            return False
        self.graph.remove_node(node_id)
        return True

    def search_nodes(
        self,
        query: str = "",
        query_embedding: list[float] | None = None,
        limit: int = 10,
        kind: NodeKind | None = None,
        language: str | None = None,
    ) -> list[KnowledgeNode]:
        """Rank nodes by similarity, confidence, usage and age.

        Similarity is cosine against ``query_embedding`` when given,
        otherwise word overlap with the query text. With a query, nodes
        with no similarity are dropped. Ties are broken by id. Returned
        nodes are reinforced.
        """
        candidates = [
            n
            for n in list(self.graph.nodes.values())
            if (kind is None or n.kind == kind)
            and (language is None or n.metadata.language == language)
        ]
        if not candidates or limit <= 0:
            return []

        self._sync_config()
        now = self._clock()
        has_query = bool(query_embedding) or bool(query.strip())
        max_access = max(n.access_count for n in candidates)

        scored: list[tuple[float, str, KnowledgeNode]] = []
        for node in candidates:
            if query_embedding:
                similarity = cosine_similarity(node.embedding, query_embedding)
            elif query.strip():
                similarity = lexical_similarity(query, f"{node.name} {node.content}")
            else:
                similarity = 0.0
            if has_query and similarity <= 0:
                continue
            score = self.dynamics.compute_rank(
                similarity=similarity,
                confidence=node.confidence,
                usage=self.dynamics.compute_usage(node.access_count, max_access),
                age=self.dynamics.compute_age(node.last_accessed, now),
            )
            scored.append((score, node.id, node))

        scored.sort(key=lambda item: (-item[0], item[1]))
        results = []
        for _, _, node in scored[:limit]:
            self._reinforce(node, now)
            results.append(node.model_copy(deep=True))
        return results

    # =========================================================================
    # Concept graph
    # =========================================================================

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        kind: EdgeKind | str,
        weight: float = 1.0,
        confidence: float = 0.5,
    ) -> ConceptEdge:
        """Connect two nodes.

        Raises:
            NotFoundError: If either endpoint does not exist.
            ValidationError: On an unknown edge kind.
        """
        try:
            kind = EdgeKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown edge kind: {kind}") from e
        edge = self.graph.add_edge(source_id, target_id, kind, weight, confidence)
        if edge is None:
            missing = source_id if source_id not in self.graph else target_id
            raise NotFoundError("KnowledgeNode", missing)
        return edge

    def get_related_concepts(
        self, node_id: str, max_depth: int = 2
    ) -> list[RelatedConcept]:
        return self.graph.related(node_id, max_depth)

    def rebuild_clusters(self) -> list[ConceptCluster]:
        return self.graph.rebuild_clusters(self.config.cluster_similarity_threshold)

    # =========================================================================
    # Patterns
    # =========================================================================

    def add_code_pattern(self, name: str, language: str, **kwargs: Any) -> CodePattern:
        """Insert a code pattern or merge it into a near-duplicate."""
        self._sync_config()
        self._validate_embedding(list(kwargs.get("embedding") or []))
        try:
            pattern, _ = self.patterns.add_code_pattern(name, language, **kwargs)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid code pattern: {e}") from e
        return pattern

    def find_code_patterns(
        self,
        language: str | None = None,
        framework: str | None = None,
        use_case: str | None = None,
        limit: int = 10,
        embedding: list[float] | None = None,
    ) -> list[CodePattern]:
        return self.patterns.find_code_patterns(
            language=language,
            framework=framework,
            use_case=use_case,
            limit=limit,
            embedding=embedding,
        )

    def detect_anti_patterns(
        self, code: str, language: str | None = None
    ) -> list[AntiPatternMatch]:
        self._sync_config()
        return self.patterns.detect_anti_patterns(code, language)

    # =========================================================================
    # Sessions and command history
    # =========================================================================

    def record_session(
        self,
        commands: list[str],
        user_id: str = "default",
        success: bool = True,
        started_at: datetime | None = None,
        ended_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SessionRecord:
        """Append a session, update command stats and usage patterns."""
        now = self._clock()
        session = SessionRecord(
            id=f"session:{uuid4().hex[:12]}",
            user_id=user_id,
            started_at=started_at or now,
            ended_at=ended_at or now,
            commands=list(commands),
            success=success,
            metadata=metadata or {},
        )
        self.sessions.append(session)
        overflow = len(self.sessions) - self.config.max_sessions
        if overflow > 0:
            del self.sessions[:overflow]

        for command in commands:
            self.update_command_history(command, success=success)
        self._detect_usage_patterns()
        return session

    def update_command_history(
        self, command: str, success: bool = True, execution_ms: float = 0.0
    ) -> CommandHistory:
        """Record one use of a command.

        When the table is over capacity the least frequent, then least
        recently used, command is evicted.
        """
        now = self._clock()
        entry = self.command_history.get(command)
        if entry is None:
            entry = CommandHistory(command=command, last_used=now)
            self.command_history[command] = entry
        entry.count += 1
        entry.success_count += 1 if success else 0
        entry.total_execution_ms += max(execution_ms, 0.0)
        entry.last_used = now

        while len(self.command_history) > max(self.config.max_command_history, 1):
            victim = min(
                (e for e in self.command_history.values() if e is not entry),
                key=lambda e: (e.count, e.last_used, e.command),
            )
            del self.command_history[victim.command]
        return entry

    def get_frequent_commands(self, limit: int = 10) -> list[CommandHistory]:
        ranked = sorted(
            self.command_history.values(), key=lambda e: (-e.count, e.command)
        )
        return ranked[:limit]

    def get_recent_commands(self, limit: int = 10) -> list[CommandHistory]:
        ranked = sorted(
            self.command_history.values(),
            key=lambda e: (-e.last_used.timestamp(), e.command),
        )
        return ranked[:limit]

    def _detect_usage_patterns(self) -> None:
        """Turn command bigrams that recur in recent sessions into patterns."""
        bigrams: Counter[tuple[str, str]] = Counter()
        for session in self.sessions[-USAGE_PATTERN_WINDOW:]:
            bigrams.update(zip(session.commands, session.commands[1:]))

        now = self._clock()
        for (first, second), frequency in bigrams.items():
            if frequency < USAGE_PATTERN_MIN_FREQUENCY:
                continue
            key = f"{first} -> {second}"
            pattern = self.usage_patterns.get(key)
            if pattern is None:
                pattern = UsagePattern(
                    id=f"usage:{_slug(key)}",
                    sequence=[first, second],
                    last_seen=now,
                )
                self.usage_patterns[key] = pattern
            pattern.frequency = frequency
            pattern.confidence = min(frequency / 10, 1.0)
            pattern.last_seen = now

    # =========================================================================
    # Preferences
    # =========================================================================

    def update_user_preferences(self, partial: dict[str, Any]) -> UserPreferenceSet:
        """Field-level merge of ``partial`` into the preference record.

        Raises:
            ValidationError: On unknown sections or invalid values.
        """
        unknown = set(partial) - set(UserPreferenceSet.model_fields)
        if unknown:
            raise ValidationError(f"Unknown preference fields: {sorted(unknown)}")
        merged = _deep_merge(self.preferences.model_dump(), partial)
        merged["updated_at"] = self._clock()
        try:
            self.preferences = UserPreferenceSet.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid preferences: {e}") from e
        return self.preferences.model_copy(deep=True)

    def set_preference(self, path: str, value: Any, confidence: float = 0.8) -> None:
        """Set one preference by dotted path (``communication.verbosity``)."""
        keys = path.split(".")
        partial: dict[str, Any] = {keys[-1]: value}
        for key in reversed(keys[:-1]):
            partial = {key: partial}
        self.update_user_preferences(partial)
        self.preferences.adaptations[path] = min(max(confidence, 0.0), 1.0)

    def adjust_suggestion_weight(self, suggestion_type: str, delta: float) -> float:
        weights = self.preferences.suggestion_weights
        weight = min(max(weights.get(suggestion_type, 0.5) + delta, 0.0), 1.0)
        weights[suggestion_type] = weight
        self.preferences.updated_at = self._clock()
        return weight

    # =========================================================================
    # Maintenance
    # =========================================================================

    def _evict_down_to(self, limit: int) -> int:
        excess = len(self.graph) - max(limit, 0)
        if excess <= 0:
            return 0
        now = self._clock()
        ranked = sorted(
            self.graph.nodes.values(),
            key=lambda n: (
                self.dynamics.compute_eviction_score(
                    n.confidence, n.last_accessed, n.access_count, now
                ),
                n.id,
            ),
        )
        for node in ranked[:excess]:
            self.graph.remove_node(node.id)
        self.evictions += excess
        logger.info(f"Evicted {excess} least-used knowledge nodes")
        return excess

    def cleanup_least_used_nodes(self) -> int:
        """Evict the lowest-usage nodes until within capacity.

        Returns:
            Number of nodes evicted.
        """
        self._sync_config()
        return self._evict_down_to(self.config.max_knowledge_nodes)

    def apply_decay(self) -> int:
        """Decay confidence and relevance by time since last access or decay.

        Returns:
            Number of nodes whose values changed.
        """
        now = self._clock()
        rate = self.config.access_decay_rate
        changed = 0
        for node in self.graph.nodes.values():
            since = max(node.last_accessed, self._last_decay_at)
            days = days_between(since, now)
            if days <= 0:
                continue
            confidence = self.dynamics.decay(node.confidence, rate, days)
            relevance = self.dynamics.decay(node.metadata.relevance, rate, days)
            if confidence != node.confidence or relevance != node.metadata.relevance:
                node.confidence = confidence
                node.metadata.relevance = relevance
                changed += 1
        self._last_decay_at = now
        return changed

    def compress_memory(self) -> dict[str, int]:
        """Merge highly coherent clusters into one representative node.

        The representative is the most confident member (lowest id on
        ties). It takes the cluster centroid as embedding and the summed
        access counts; edges of merged nodes are re-pointed to it. Old
        sessions are pruned too.
        """
        self._sync_config()
        clusters = self.rebuild_clusters()
        merged_clusters = 0
        removed = 0

        for cluster in clusters:
            if cluster.coherence < self.config.compression_threshold:
                continue
            members = [
                self.graph.nodes[i] for i in cluster.node_ids if i in self.graph
            ]
            if len(members) < 2:
                continue
            representative = min(members, key=lambda n: (-n.confidence, n.id))
            for node in members:
                if node is representative:
                    continue
                representative.access_count += node.access_count
                representative.last_accessed = max(
                    representative.last_accessed, node.last_accessed
                )
                representative.merged_from.extend([node.id, *node.merged_from])
                self.graph.repoint_edges(node.id, representative.id)
                self.graph.remove_node(node.id)
                removed += 1
            representative.embedding = list(cluster.centroid)
            merged_clusters += 1

        if merged_clusters:
            self.rebuild_clusters()

        cutoff = self._clock() - timedelta(days=self.config.session_retention_days)
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.started_at >= cutoff]
        pruned = before - len(self.sessions)

        logger.info(
            f"Compressed {merged_clusters} clusters ({removed} nodes), "
            f"pruned {pruned} sessions"
        )
        return {
            "clusters_merged": merged_clusters,
            "nodes_removed": removed,
            "sessions_pruned": pruned,
        }

    # =========================================================================
    # Event processing
    # =========================================================================

    def process_memory_event(self, event: MemoryEvent) -> bool:
        """Route an event to its handler.

        Events tagged ``knowledge`` also create a knowledge node.
        Unknown kinds are no-ops.

        Returns:
            True if anything in the store changed.
        """
        changed = False
        if "knowledge" in event.metadata.tags:
            changed = self._ingest_knowledge(event)
        handler = self._handlers.get(event.kind)  # type: ignore[arg-type]
        if handler is None:
            return changed
        return handler(event) or changed

    def _ingest_knowledge(self, event: MemoryEvent) -> bool:
        data = event.data
        name = data.get("name")
        if not name:
            return False
        node = self.add_node(
            kind=data.get("kind", NodeKind.CONCEPT),
            name=name,
            content=data.get("content", ""),
            embedding=data.get("embedding"),
            metadata=data.get("metadata"),
            confidence=event.metadata.confidence,
        )
        for relation in data.get("relations", []):
            target_id = relation.get("target_id")
            if target_id not in self.graph:
                logger.warning(f"Skipping relation to unknown node {target_id}")
                continue
            self.add_edge(
                node.id,
                target_id,
                relation.get("kind", EdgeKind.USES),
                weight=relation.get("weight", 1.0),
                confidence=relation.get("confidence", 0.5),
            )
        return True

    def _on_code_generation(self, event: MemoryEvent) -> bool:
        data = event.data
        code = data.get("code")
        language = data.get("language")
        if not code or not language:
            return False

        extracted = self.patterns.extract_patterns(code)
        if not extracted:
            digest = hashlib.sha256(code.encode()).hexdigest()[:8]
            name = data.get("name") or f"snippet:{digest}"
            candidates = [(name, code, data.get("use_case", "snippet"))]
        else:
            candidates = [
                (p.name, p.template, data.get("use_case", p.use_case)) for p in extracted
            ]

        for index, (name, template, use_case) in enumerate(candidates):
            self.add_code_pattern(
                name,
                language,
                template=template,
                framework=data.get("framework"),
                use_case=use_case,
                description=data.get("description", ""),
                embedding=data.get("embedding"),
                performance=data.get("performance"),
                examples=[
                    CodeExample(
                        id=f"{event.id}:{index}",
                        code=template,
                        description=data.get("description", ""),
                        source_event_id=event.id,
                    )
                ],
            )
        return True

    def _on_pattern_recognition(self, event: MemoryEvent) -> bool:
        data = event.data
        changed = False
        success = bool(data.get("success", True))

        pattern_id = data.get("pattern_id")
        if pattern_id and "success" in data:
            changed = self.patterns.record_outcome(pattern_id, success) is not None

        for command in data.get("commands", []):
            self.update_command_history(
                command, success=success, execution_ms=data.get("execution_ms", 0.0)
            )
            changed = True

        sequence = data.get("sequence")
        if sequence:
            self.record_session(sequence, user_id=event.user_id, success=success)
            changed = True
        return changed

    def _on_learning_update(self, event: MemoryEvent) -> bool:
        data = event.data
        changed = False

        preference = data.get("preference")
        if preference and "value" in data:
            self.set_preference(preference, data["value"], data.get("confidence", 0.8))
            changed = True

        suggestion_type = data.get("suggestion_type")
        if suggestion_type and "accepted" in data:
            delta = SUGGESTION_WEIGHT_STEP if data["accepted"] else -SUGGESTION_WEIGHT_STEP
            self.adjust_suggestion_weight(suggestion_type, delta)
            changed = True
        return changed

    # =========================================================================
    # Statistics and state
    # =========================================================================

    def get_statistics(self) -> dict[str, Any]:
        nodes = list(self.graph.nodes.values())
        avg_confidence = (
            sum(n.confidence for n in nodes) / len(nodes) if nodes else 0.0
        )
        return {
            "knowledge_nodes": len(nodes),
            "capacity": self.config.max_knowledge_nodes,
            "edges": len(self.graph.edges),
            "clusters": len(self.graph.clusters),
            "code_patterns": len(self.patterns.code_patterns),
            "anti_patterns": len(self.patterns.anti_patterns),
            "best_practices": len(self.patterns.best_practices),
            "templates": len(self.patterns.templates),
            "sessions": len(self.sessions),
            "commands": len(self.command_history),
            "usage_patterns": len(self.usage_patterns),
            "average_confidence": avg_confidence,
            "evictions": self.evictions,
        }

    def clear(self) -> None:
        """Reset to a valid empty state."""
        self.graph.clear()
        self.patterns.clear()
        self.sessions = []
        self.command_history = {}
        self.usage_patterns = {}
        self.preferences = UserPreferenceSet()
        self.evictions = 0
        self._last_decay_at = self._clock()

    def export_state(self) -> dict[str, Any]:
        return {
            "nodes": [n.model_dump(mode="json") for n in self.graph.nodes.values()],
            "edges": [e.model_dump(mode="json") for e in self.graph.edges.values()],
            "patterns": self.patterns.export_state(),
            "sessions": [s.model_dump(mode="json") for s in self.sessions],
            "commands": [
                c.model_dump(mode="json") for c in self.command_history.values()
            ],
            "usage_patterns": [
                u.model_dump(mode="json") for u in self.usage_patterns.values()
            ],
            "preferences": self.preferences.model_dump(mode="json"),
        }

    def import_state(self, state: dict[str, Any]) -> None:
        self.clear()
        for raw in state.get("nodes", []):
            self.graph.add_node(KnowledgeNode.model_validate(raw))
        for raw in state.get("edges", []):
            edge = ConceptEdge.model_validate(raw)
            self.graph.add_edge(
                edge.source_id, edge.target_id, edge.kind, edge.weight, edge.confidence
            )
        self.patterns.import_state(state.get("patterns", {}))
        self.sessions = [SessionRecord.model_validate(s) for s in state.get("sessions", [])]
        for raw in state.get("commands", []):
            entry = CommandHistory.model_validate(raw)
            self.command_history[entry.command] = entry
        for raw in state.get("usage_patterns", []):
            pattern = UsagePattern.model_validate(raw)
            self.usage_patterns[" -> ".join(pattern.sequence)] = pattern
        if "preferences" in state:
            self.preferences = UserPreferenceSet.model_validate(state["preferences"])
