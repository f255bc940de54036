"""Unit tests for the System 1 store."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dualmem.config import System1Config
from dualmem.domain.exceptions import NotFoundError, ValidationError
from dualmem.domain.models import EdgeKind, MemoryEvent, NodeKind
from dualmem.domain.services import System1Store


@pytest.fixture
def store(clock) -> System1Store:
    return System1Store(System1Config(embedding_dimension=4), clock=clock)


def make_event(kind: str, data: dict, tags: list[str] | None = None, **metadata) -> MemoryEvent:
    return MemoryEvent(
        id=f"evt:{kind}",
        kind=kind,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        data=data,
        metadata={"tags": tags or [], **metadata},
    )


class TestKnowledgeNodes:
    def test_add_and_get(self, store):
        """Reading a node reinforces it."""
        node = store.add_node(NodeKind.FUNCTION, "retry", "retry with backoff")

        fetched = store.get_node(node.id)

        assert fetched is not None
        assert fetched.id.startswith("function:retry:")
        assert fetched.access_count == 1
        assert fetched.confidence == pytest.approx(0.52)

    def test_get_returns_copy(self, store):
        """Mutating a returned node does not change the store."""
        node = store.add_node(NodeKind.CONCEPT, "cache")
        fetched = store.get_node(node.id)
        fetched.name = "changed"

        assert store.graph.nodes[node.id].name == "cache"

    def test_get_unknown_returns_none(self, store):
        """Lookups never raise for missing ids."""
        assert store.get_node("concept:missing") is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"kind": "planet", "name": "x"},
            {"kind": NodeKind.CONCEPT, "name": "  "},
            {"kind": NodeKind.CONCEPT, "name": "x", "embedding": [1.0, 0.0]},
            {"kind": NodeKind.CONCEPT, "name": "x", "confidence": 2.0},
        ],
    )
    def test_add_invalid(self, store, kwargs):
        """Unknown kinds, empty names, wrong dimensions and bad confidence fail."""
        with pytest.raises(ValidationError):
            store.add_node(**kwargs)

    def test_update_merges_metadata(self, store):
        """Nested metadata is merged rather than replaced."""
        node = store.add_node(
            NodeKind.MODULE, "auth", metadata={"language": "python", "domain": "security"}
        )

        updated = store.update_node(node.id, metadata={"framework": "fastapi"})

        assert updated.metadata.language == "python"
        assert updated.metadata.framework == "fastapi"

    def test_update_identity_rejected(self, store):
        """Identity fields never change."""
        node = store.add_node(NodeKind.CONCEPT, "cache")
        with pytest.raises(ValidationError):
            store.update_node(node.id, name="other")

    def test_update_unknown(self, store):
        """Updating a missing node raises NotFoundError."""
        with pytest.raises(NotFoundError):
            store.update_node("concept:missing", content="x")

    def test_remove(self, store):
        """Removal reports whether a node existed."""
        node = store.add_node(NodeKind.CONCEPT, "cache")

        assert store.remove_node(node.id) is True
        assert store.remove_node(node.id) is False

    def test_capacity_evicts_least_used(self, clock):
        """Inserting at capacity evicts the least-used node first."""
        store = System1Store(
            System1Config(embedding_dimension=4, max_knowledge_nodes=2), clock=clock
        )
        kept = store.add_node(NodeKind.CONCEPT, "kept", confidence=0.5)
        store.get_node(kept.id)
        victim = store.add_node(NodeKind.CONCEPT, "victim", confidence=0.9)

        newcomer = store.add_node(NodeKind.CONCEPT, "newcomer")

        assert victim.id not in store.graph
        assert kept.id in store.graph
        assert newcomer.id in store.graph
        assert store.evictions == 1


class TestSearch:
    def test_embedding_search_ranks_by_similarity(self, store):
        """The closest embedding ranks first."""
        near = store.add_node(NodeKind.CONCEPT, "near", embedding=[1.0, 0.0, 0.0, 0.0])
        far = store.add_node(NodeKind.CONCEPT, "far", embedding=[0.5, 0.5, 0.5, 0.0])
        store.add_node(NodeKind.CONCEPT, "orthogonal", embedding=[0.0, 0.0, 0.0, 1.0])

        results = store.search_nodes(query_embedding=[1.0, 0.0, 0.0, 0.0])

        assert [n.id for n in results] == [near.id, far.id]

    def test_text_search_drops_unrelated(self, store):
        """Text search returns only nodes sharing words with the query."""
        hit = store.add_node(NodeKind.FUNCTION, "parse config", "load yaml config")
        store.add_node(NodeKind.FUNCTION, "render page", "html output")

        results = store.search_nodes("config loader")

        assert [n.id for n in results] == [hit.id]

    def test_search_filters(self, store):
        """Kind and language filters are exact."""
        store.add_node(NodeKind.CLASS, "Cache", metadata={"language": "python"})
        wanted = store.add_node(NodeKind.FUNCTION, "cache get", metadata={"language": "python"})
        store.add_node(NodeKind.FUNCTION, "cache put", metadata={"language": "go"})

        results = store.search_nodes("cache", kind=NodeKind.FUNCTION, language="python")

        assert [n.id for n in results] == [wanted.id]

    def test_search_reinforces_results(self, store):
        """Returned nodes are reinforced."""
        node = store.add_node(NodeKind.CONCEPT, "cache")

        store.search_nodes("cache")

        assert store.graph.nodes[node.id].access_count == 1

    def test_limit(self, store):
        """At most ``limit`` results are returned."""
        for i in range(5):
            store.add_node(NodeKind.CONCEPT, f"cache {i}")

        assert len(store.search_nodes("cache", limit=3)) == 3

    def test_empty_store(self, store):
        """Searching an empty store returns nothing."""
        assert store.search_nodes("anything") == []


class TestGraphOperations:
    def test_edges_and_related(self, store):
        """Edges link nodes and traversal finds neighbours."""
        a = store.add_node(NodeKind.MODULE, "api")
        b = store.add_node(NodeKind.MODULE, "db")

        store.add_edge(a.id, b.id, "depends_on")

        related = store.get_related_concepts(a.id)
        assert [r.node.id for r in related] == [b.id]

    def test_edge_to_missing_node(self, store):
        """An edge to a missing node raises NotFoundError."""
        a = store.add_node(NodeKind.MODULE, "api")
        with pytest.raises(NotFoundError):
            store.add_edge(a.id, "module:missing", EdgeKind.USES)

    def test_unknown_edge_kind(self, store):
        """Unknown edge kinds are rejected."""
        a = store.add_node(NodeKind.MODULE, "api")
        b = store.add_node(NodeKind.MODULE, "db")
        with pytest.raises(ValidationError):
            store.add_edge(a.id, b.id, "loves")

    def test_eviction_cascades_edges(self, store):
        """Removing a node removes its edges."""
        a = store.add_node(NodeKind.MODULE, "api")
        b = store.add_node(NodeKind.MODULE, "db")
        store.add_edge(a.id, b.id, EdgeKind.USES)

        store.remove_node(b.id)

        assert store.graph.edges == {}
        assert store.get_related_concepts(a.id) == []


class TestCommandsAndSessions:
    def test_command_history(self, store):
        """Counts, successes and execution time are tracked."""
        store.update_command_history("pytest", success=True, execution_ms=100)
        entry = store.update_command_history("pytest", success=False, execution_ms=300)

        assert entry.count == 2
        assert entry.success_rate == 0.5
        assert entry.avg_execution_ms == 200.0

    def test_command_history_capacity(self, clock):
        """The least frequent command is evicted when over capacity."""
        store = System1Store(
            System1Config(embedding_dimension=4, max_command_history=2), clock=clock
        )
        store.update_command_history("git status")
        store.update_command_history("git status")
        store.update_command_history("ls")
        clock.advance(seconds=1)
        store.update_command_history("make")

        assert set(store.command_history) == {"git status", "make"}

    def test_frequent_and_recent(self, store, clock):
        """Frequent orders by count, recent by last use."""
        store.update_command_history("a")
        store.update_command_history("a")
        clock.advance(minutes=1)
        store.update_command_history("b")

        assert [c.command for c in store.get_frequent_commands()] == ["a", "b"]
        assert [c.command for c in store.get_recent_commands()] == ["b", "a"]

    def test_sessions_detect_usage_patterns(self, store):
        """A command pair seen in three sessions becomes a usage pattern."""
        for _ in range(3):
            store.record_session(["git add", "git commit", "git push"])

        assert "git add -> git commit" in store.usage_patterns
        pattern = store.usage_patterns["git add -> git commit"]
        assert pattern.frequency == 3
        assert pattern.confidence == pytest.approx(0.3)
        assert store.command_history["git add"].count == 3


class TestPreferences:
    def test_field_level_merge(self, store):
        """Updating one field keeps the rest of the section."""
        store.update_user_preferences({"communication": {"verbosity": "terse"}})

        prefs = store.preferences
        assert prefs.communication.verbosity == "terse"
        assert prefs.communication.explanation_depth == "moderate"
        assert prefs.updated_at is not None

    def test_returns_copy(self, store):
        """The returned preferences are detached from the store."""
        prefs = store.update_user_preferences({"communication": {"verbosity": "terse"}})
        prefs.communication.verbosity = "chatty"

        assert store.preferences.communication.verbosity == "terse"

    def test_unknown_section(self, store):
        """Unknown preference sections are rejected."""
        with pytest.raises(ValidationError):
            store.update_user_preferences({"astrology": {"sign": "leo"}})

    def test_invalid_value(self, store):
        """Invalid values are rejected and the record is unchanged."""
        with pytest.raises(ValidationError):
            store.update_user_preferences({"quality_standards": {"min_quality": 5}})
        assert store.preferences.quality_standards.min_quality == 0.7

    def test_set_preference_by_path(self, store):
        """Dotted paths set nested values and record confidence."""
        store.set_preference("learning_style.prefers_reasoning", True, confidence=0.9)

        assert store.preferences.learning_style.prefers_reasoning is True
        assert store.preferences.adaptations["learning_style.prefers_reasoning"] == 0.9

    def test_suggestion_weight_clamped(self, store):
        """Suggestion weights stay in [0, 1]."""
        assert store.adjust_suggestion_weight("refactor", 0.3) == pytest.approx(0.8)
        assert store.adjust_suggestion_weight("refactor", 0.5) == 1.0
        assert store.adjust_suggestion_weight("refactor", -2.0) == 0.0


class TestMaintenance:
    def test_decay_after_idle_days(self, store, clock):
        """Confidence and relevance decay with idle time."""
        node = store.add_node(NodeKind.CONCEPT, "cache", confidence=0.8)
        clock.advance(days=10)

        changed = store.apply_decay()

        decayed = store.graph.nodes[node.id]
        assert changed == 1
        assert decayed.confidence < 0.8
        assert decayed.metadata.relevance < 1.0

    def test_decay_not_applied_twice(self, store, clock):
        """A second decay at the same time changes nothing."""
        store.add_node(NodeKind.CONCEPT, "cache", confidence=0.8)
        clock.advance(days=10)
        store.apply_decay()

        assert store.apply_decay() == 0

    def test_compress_merges_coherent_cluster(self, store):
        """Near-identical nodes collapse into the most confident one."""
        keep = store.add_node(
            NodeKind.CONCEPT, "a", embedding=[1.0, 0.0, 0.0, 0.0], confidence=0.9
        )
        merged = store.add_node(
            NodeKind.CONCEPT, "b", embedding=[1.0, 0.001, 0.0, 0.0], confidence=0.5
        )
        other = store.add_node(NodeKind.CONCEPT, "c", embedding=[0.0, 1.0, 0.0, 0.0])
        store.add_edge(merged.id, other.id, EdgeKind.USES)

        result = store.compress_memory()

        assert result["clusters_merged"] == 1
        assert result["nodes_removed"] == 1
        assert merged.id not in store.graph
        representative = store.graph.nodes[keep.id]
        assert merged.id in representative.merged_from
        edges = store.graph.edges_of(keep.id)
        assert [(e.source_id, e.target_id) for e in edges] == [(keep.id, other.id)]

    def test_compress_prunes_old_sessions(self, store, clock):
        """Sessions older than the retention window are dropped."""
        store.record_session(["ls"])
        clock.advance(days=31)

        result = store.compress_memory()

        assert result["sessions_pruned"] == 1
        assert store.sessions == []

    def test_cleanup_within_capacity(self, store):
        """Cleanup is a no-op when under capacity."""
        store.add_node(NodeKind.CONCEPT, "cache")
        assert store.cleanup_least_used_nodes() == 0


class TestEventProcessing:
    def test_code_generation_extracts_patterns(self, store):
        """Generated code becomes code patterns with an example."""
        event = make_event(
            "code_generation",
            {"code": "def add(a, b):\n    return a + b\n", "language": "python"},
        )

        assert store.process_memory_event(event) is True

        patterns = store.find_code_patterns(language="python")
        assert len(patterns) == 1
        assert patterns[0].name == "def add(a, b)"
        assert patterns[0].examples[0].source_event_id == event.id

    def test_code_generation_without_code(self, store):
        """Events without code change nothing."""
        event = make_event("code_generation", {"language": "python"})
        assert store.process_memory_event(event) is False

    def test_knowledge_tag_creates_node(self, store):
        """Events tagged ``knowledge`` create knowledge nodes."""
        event = make_event(
            "mode_change",
            {"name": "Hexagonal architecture", "content": "ports and adapters"},
            tags=["knowledge"],
            confidence=0.9,
        )

        assert store.process_memory_event(event) is True

        nodes = list(store.graph.nodes.values())
        assert len(nodes) == 1
        assert nodes[0].confidence == 0.9

    def test_learning_update_feedback(self, store):
        """Suggestion feedback adjusts the suggestion weight."""
        event = make_event(
            "learning_update", {"suggestion_type": "refactor", "accepted": False}
        )

        store.process_memory_event(event)

        assert store.preferences.suggestion_weights["refactor"] == pytest.approx(0.45)

    def test_pattern_recognition_records_commands(self, store):
        """Commands in a pattern event update command history."""
        event = make_event(
            "pattern_recognition", {"commands": ["pytest"], "success": False}
        )

        assert store.process_memory_event(event) is True
        assert store.command_history["pytest"].success_count == 0

    def test_unknown_kind_is_noop(self, store):
        """Unknown kinds change nothing."""
        event = make_event("deployment", {"env": "prod"})
        assert store.process_memory_event(event) is False


class TestState:
    def test_export_import_round_trip(self, store, clock):
        """Exported state restores nodes, edges and preferences."""
        a = store.add_node(NodeKind.MODULE, "api")
        b = store.add_node(NodeKind.MODULE, "db")
        store.add_edge(a.id, b.id, EdgeKind.USES)
        store.set_preference("communication.verbosity", "terse")

        restored = System1Store(System1Config(embedding_dimension=4), clock=clock)
        restored.import_state(store.export_state())

        assert set(restored.graph.nodes) == {a.id, b.id}
        assert len(restored.graph.edges) == 1
        assert restored.preferences.communication.verbosity == "terse"

    def test_clear(self, store):
        """Clear leaves an empty, valid store."""
        store.add_node(NodeKind.CONCEPT, "cache")
        store.update_command_history("ls")

        store.clear()

        stats = store.get_statistics()
        assert stats["knowledge_nodes"] == 0
        assert stats["commands"] == 0
        assert stats["anti_patterns"] > 0
