"""Integration tests for the full ingest, query and coordination flow."""

from __future__ import annotations

import pytest

from dualmem.domain.exceptions import InvalidStateError
from dualmem.domain.models import ConflictType, MemoryQuery, Priority, QueryType

GENERATED = [
    ("def fetch_user(user_id):\n    return db.get(user_id)\n", [1.0, 0.0, 0.0, 0.0]),
    ("def load_account(account_id):\n    return db.get(account_id)\n", [0.99, 0.05, 0.0, 0.0]),
    ("def get_order(order_id):\n    return db.get(order_id)\n", [0.98, 0.1, 0.0, 0.0]),
]


def knowledge_event(name: str, confidence: float = 0.9) -> dict:
    return {
        "kind": "team_interaction",
        "data": {"name": name, "content": f"Notes about {name}"},
        "metadata": {"tags": ["knowledge"], "confidence": confidence},
    }


class TestIngestFlow:
    """Events flow from the queue into the right store."""

    def test_similar_generations_merge(self, container):
        """Three similar generations become one pattern with three examples."""
        engine = container.engine
        events = [
            engine.store(
                {
                    "kind": "code_generation",
                    "data": {"code": code, "language": "python", "embedding": embedding},
                }
            )
            for code, embedding in GENERATED
        ]
        engine.flush()

        (pattern,) = container.system1.find_code_patterns(language="python")
        assert pattern.usage_count == 3
        assert [e.source_event_id for e in pattern.examples] == [e.id for e in events]

        response = engine.find_patterns(language="python")
        assert response.data[0].id == pattern.id

    def test_knowledge_tag_creates_node(self, container):
        """Events tagged knowledge become searchable nodes."""
        container.engine.store(knowledge_event("circuit breaker"))
        container.engine.flush()

        response = container.engine.find_knowledge("circuit breaker", urgency=Priority.CRITICAL)

        assert [n.name for n in response.data] == ["circuit breaker"]

    def test_bug_fixes_reflected_and_adapted(self, container):
        """Repeated bug fixes are reflected on and raise the quality bar."""
        coordinator = container.coordinator
        for minutes in (90, 120, 15):
            container.engine.store(
                {"kind": "bug_fix", "data": {"bug_type": "race condition", "time_to_fix": minutes}}
            )
        container.engine.flush()

        assert len(container.system2.reflections) == 3
        assert container.system2.quality_threshold == pytest.approx(0.75)
        assert coordinator.behavior_patterns[-1].kind == "quality_focus"


class TestCacheStaleness:
    """Cached answers may be stale until their TTL runs out."""

    def test_stale_until_expiry(self, container, clock):
        engine = container.engine
        query = MemoryQuery(
            type=QueryType.KNOWLEDGE, query="circuit breaker", urgency=Priority.CRITICAL
        )
        assert engine.query(query).data == []

        engine.store(knowledge_event("circuit breaker"))
        engine.flush()
        stale = engine.query(query)
        clock.advance(seconds=601)
        fresh = engine.query(query)

        assert stale.cached is True
        assert stale.data == []
        assert fresh.cached is False
        assert [n.name for n in fresh.data] == ["circuit breaker"]


class TestCoordinationFlow:
    """Synchronization and conflict handling over real stores."""

    def promote(self, container, name: str = "circuit breaker") -> str:
        container.engine.store(knowledge_event(name))
        container.engine.flush()
        (node,) = [n for n in container.system1.graph.nodes.values() if n.name == name]
        for _ in range(5):
            container.system1.get_node(node.id)
        return node.id

    def test_promoted_traces_are_sealed(self, container):
        """Traces created by synchronization cannot be extended."""
        self.promote(container)
        container.coordinator.synchronize_systems()
        (trace,) = container.system2.search_traces_by_text("circuit breaker")

        with pytest.raises(InvalidStateError):
            container.system2.add_step(trace.id, {"type": "analysis"})

    def test_repeated_sync_is_idempotent(self, container):
        """Only the first of several syncs writes anything."""
        self.promote(container)
        for _ in range(3):
            container.system1.update_command_history("make release", success=False)

        first = container.coordinator.run_sync_cycle()
        second = container.coordinator.run_sync_cycle()
        third = container.coordinator.run_sync_cycle()

        assert first.total_changes == 2
        assert second.total_changes == 0
        assert third.total_changes == 0
        assert len(container.system2.traces) == 1
        assert len(container.system2.reflections) == 1

    def test_conflicts_resolved_in_cycle(self, container):
        """A maintenance cycle resolves every conflict it finds."""
        node_id = self.promote(container)
        container.coordinator.synchronize_systems()
        container.system1.remove_node(node_id)
        container.system1.set_preference("quality_standards.min_quality", 0.9)

        result = container.coordinator.run_maintenance_cycle()

        assert [r.conflict_type for r in result["resolutions"]] == [
            ConflictType.DATA_INCONSISTENCY,
            ConflictType.PREFERENCE_MISMATCH,
        ]
        assert all(r.success for r in result["resolutions"])
        assert container.coordinator.detect_conflicts() == []

    def test_clear_memory_resets_everything(self, container):
        """After a clear both stores and the coordinator start over."""
        self.promote(container)
        container.coordinator.synchronize_systems()

        container.engine.clear_memory()

        assert container.system1.get_statistics()["knowledge_nodes"] == 0
        assert container.system2.traces == {}
        assert container.coordinator.sync_points == []
        assert container.coordinator.synchronize_systems().total_changes == 0
