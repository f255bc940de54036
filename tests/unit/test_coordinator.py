"""Unit tests for the Memory Coordinator."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dualmem.domain.models import (
    CacheStrategy,
    ConflictStrategy,
    ConflictType,
    CoordinatorState,
    EnhancementType,
    MemoryEvent,
    Priority,
    QueryType,
    SystemHealth,
    TransferType,
)

RISKY_CODE = "def run(cmd):\n    result = eval(cmd)\n    document.write(result)\n    return result\n"


@pytest.fixture
def coordinator(container):
    return container.coordinator


def promote_ready_node(system1, name: str = "retry with backoff") -> str:
    """Add a node confident and used enough to be promoted."""
    node = system1.add_node("concept", name, confidence=0.9)
    for _ in range(5):
        system1.get_node(node.id)
    return node.id


def feedback_event(index: int, suggestion_type: str, accepted: bool) -> MemoryEvent:
    return MemoryEvent(
        id=f"evt:{index}",
        kind="learning_update",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        data={"suggestion_type": suggestion_type, "accepted": accepted},
    )


def bug_fix_event(index: int) -> MemoryEvent:
    return MemoryEvent(
        id=f"evt:bug:{index}",
        kind="bug_fix",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        data={"bug_type": "off by one"},
    )


class TestSynchronization:
    def test_fresh_sync_is_empty(self, coordinator):
        """Nothing to transfer on an empty memory."""
        report = coordinator.synchronize_systems()

        assert report.success is True
        assert report.total_changes == 0
        assert [p.transfer_type for p in report.sync_points] == [
            TransferType.KNOWLEDGE_TO_REASONING,
            TransferType.QUALITY_TO_PATTERNS,
            TransferType.PREFERENCES,
            TransferType.LEARNING_DATA,
        ]

    def test_promotes_frequent_knowledge(self, coordinator, container):
        """Confident, frequently used knowledge becomes a sealed trace."""
        node_id = promote_ready_node(container.system1)

        report = coordinator.synchronize_systems()

        assert report.sync_points[0].changes == 1
        (trace,) = container.system2.traces.values()
        assert trace.sealed is True
        assert trace.source_key.startswith(f"knowledge:{node_id}:")
        assert trace.context.problem == "Apply knowledge: retry with backoff"

    def test_sync_is_idempotent(self, coordinator, container):
        """A second run with unchanged data writes nothing."""
        promote_ready_node(container.system1)
        coordinator.synchronize_systems()

        report = coordinator.synchronize_systems()

        assert report.total_changes == 0
        assert len(container.system2.traces) == 1

    def test_changed_content_promoted_again(self, coordinator, container):
        """New content under the same node is a new transfer."""
        node_id = promote_ready_node(container.system1)
        coordinator.synchronize_systems()
        container.system1.update_node(node_id, content="now with jitter")

        report = coordinator.synchronize_systems()

        assert report.sync_points[0].changes == 1
        assert len(container.system2.traces) == 2

    def test_promotion_thresholds(self, coordinator, container):
        """Rarely used or unconfident knowledge stays in System 1."""
        rare = container.system1.add_node("concept", "rarely used", confidence=0.95)
        for _ in range(4):
            container.system1.get_node(rare.id)
        unsure = container.system1.add_node("concept", "unsure", confidence=0.5)
        for _ in range(10):
            container.system1.get_node(unsure.id)

        assert coordinator.synchronize_systems().total_changes == 0

    def test_quality_focus_transferred(self, coordinator, container):
        """Weak quality dimensions become the user's quality focus."""
        container.system2.assess_code_quality(RISKY_CODE, "python")

        report = coordinator.synchronize_systems()

        assert report.sync_points[1].changes == 1
        assert "security" in container.system1.preferences.quality_standards.focus
        assert coordinator.synchronize_systems().total_changes == 0

    def test_preferences_shape_reasoning_profile(self, coordinator, container):
        """Explanation depth sets the minimum reasoning steps."""
        container.system1.set_preference("communication.explanation_depth", "detailed")
        container.system1.set_preference("learning_style.prefers_reasoning", True)

        report = coordinator.synchronize_systems()

        assert report.sync_points[2].changes == 1
        profile = container.system2.reasoning_profile
        assert profile.min_steps == 3
        assert profile.prefers_reasoning is True

    def test_failing_commands_reflected(self, coordinator, container):
        """Commands that mostly fail produce one reflection."""
        for _ in range(3):
            container.system1.update_command_history("make deploy", success=False)
        container.system1.update_command_history("ls", success=False)

        report = coordinator.synchronize_systems()
        coordinator.synchronize_systems()

        assert report.sync_points[3].changes == 1
        (entry,) = container.system2.reflections.values()
        assert entry.trigger == "Repeated failures: make deploy"
        assert entry.action_items

    def test_transfer_failure_isolated(self, coordinator, container, monkeypatch):
        """A failing transfer is recorded and the others still run."""

        def explode():
            raise RuntimeError("transfer broke")

        monkeypatch.setattr(coordinator, "_transfer_quality", explode)
        promote_ready_node(container.system1)

        report = coordinator.synchronize_systems()

        assert report.success is False
        assert report.sync_points[1].error == "transfer broke"
        assert report.sync_points[0].changes == 1
        assert len(report.sync_points) == 4
        assert coordinator.get_metrics().failed_items == 1

    def test_stale_epoch_cancels(self, coordinator, container):
        """A sync started before a clear does nothing."""
        report = coordinator.synchronize_systems(epoch=container.engine.epoch + 1)

        assert report.cancelled is True
        assert report.sync_points == []

    def test_audit_retention(self, coordinator):
        """Only the newest sync points are kept."""
        coordinator.config.audit_retention = 2
        coordinator.synchronize_systems()

        assert len(coordinator.sync_points) == 2
        assert coordinator.sync_points[-1].transfer_type == TransferType.LEARNING_DATA


class TestOptimization:
    def test_queue_recommendation_applied(self, coordinator, container):
        """A safe automated recommendation is applied at once."""
        engine = container.engine
        engine.config.performance.batch_size = 1
        for i in range(6):
            engine.store({"kind": "bug_fix", "data": {"bug_type": f"bug {i}"}})

        (rec,) = coordinator.optimize_performance()

        assert rec.target == "queue"
        assert rec.applied is True
        assert rec.priority == pytest.approx(6.0)
        assert engine.config.performance.batch_size == 2
        assert coordinator.get_metrics().applied_optimizations == 1

    def test_risky_recommendation_surfaced(self, coordinator, container, monkeypatch):
        """Recommendations that need a human become System 2 enhancements."""
        engine = container.engine

        def explode(*args, **kwargs):
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(engine.system1, "search_nodes", explode)
        for i in range(10):
            engine.query(
                {"type": QueryType.KNOWLEDGE, "query": f"q{i}", "urgency": Priority.CRITICAL}
            )

        recs = coordinator.optimize_performance()

        assert [r.target for r in recs] == ["cache", "errors"]
        adaptive, errors = recs
        assert adaptive.applied is True
        assert engine.config.performance.cache_strategy == CacheStrategy.ADAPTIVE
        assert errors.applied is False
        enhancement = container.system2.get_enhancement(errors.enhancement_id)
        assert enhancement.type == EnhancementType.RELIABILITY
        assert enhancement.source == "coordinator"

        again = coordinator.optimize_performance()
        assert [r.enhancement_id for r in again] == [errors.enhancement_id]

    def test_slow_single_system_queries_surfaced(self, coordinator, container):
        """Single-system answers over the latency target become an enhancement."""
        engine = container.engine
        engine.config.performance.single_system_latency_ms = -1.0
        for i in range(5):
            engine.query(
                {"type": QueryType.KNOWLEDGE, "query": f"q{i}", "urgency": Priority.CRITICAL}
            )

        (rec,) = coordinator.optimize_performance()

        assert rec.target == "routing"
        assert rec.applied is False
        enhancement = container.system2.get_enhancement(rec.enhancement_id)
        assert enhancement.type == EnhancementType.PERFORMANCE
        assert "-1 ms latency target" in enhancement.description

    def test_failed_application_recorded(self, coordinator, container, monkeypatch):
        """A recommendation that fails to apply is kept with its error."""
        engine = container.engine
        engine.config.performance.batch_size = 1
        for i in range(6):
            engine.store({"kind": "bug_fix", "data": {}})

        def explode(updates):
            raise RuntimeError("config locked")

        monkeypatch.setattr(engine, "update_config", explode)

        (rec,) = coordinator.optimize_performance()

        assert rec.applied is False
        assert rec.error == "config locked"
        assert coordinator.recommendations == [rec]

    def test_nothing_to_do(self, coordinator):
        """A quiet system produces no recommendations."""
        assert coordinator.optimize_performance() == []
        assert coordinator.get_metrics().optimization_runs == 1


class TestBehaviourAdaptation:
    def test_repeated_rejection_lowers_weight(self, coordinator, container):
        """Three rejections of a suggestion type lower its weight."""
        for i in range(2):
            assert coordinator.adapt_to_user_behavior(feedback_event(i, "refactor", False)) == []

        (pattern,) = coordinator.adapt_to_user_behavior(feedback_event(2, "refactor", False))

        assert pattern.kind == "suggestion_rejected"
        assert pattern.occurrences == 3
        assert pattern.confidence == pytest.approx(0.8)
        weights = container.system1.preferences.suggestion_weights
        assert weights["refactor"] == pytest.approx(0.35)

    def test_evidence_consumed(self, coordinator, container):
        """Applied evidence is not counted again."""
        for i in range(3):
            coordinator.adapt_to_user_behavior(feedback_event(i, "refactor", False))

        assert coordinator.adapt_to_user_behavior(feedback_event(3, "refactor", False)) == []
        assert coordinator.get_metrics().adaptation_events == 1

    def test_acceptance_raises_weight(self, coordinator, container):
        """Repeated acceptance raises the weight."""
        for i in range(3):
            coordinator.adapt_to_user_behavior(feedback_event(i, "docs", True))

        weights = container.system1.preferences.suggestion_weights
        assert weights["docs"] == pytest.approx(0.65)

    def test_below_threshold_not_applied(self, coordinator, container):
        """Patterns under the adaptation threshold are reported only."""
        coordinator.config.adaptation_threshold = 0.9
        for i in range(2):
            coordinator.adapt_to_user_behavior(feedback_event(i, "docs", True))

        (pattern,) = coordinator.adapt_to_user_behavior(feedback_event(2, "docs", True))

        assert pattern.adaptation == ""
        assert "docs" not in container.system1.preferences.suggestion_weights

    def test_quality_focus_raises_threshold(self, coordinator, container):
        """Repeated bug fixes raise the reasoning quality threshold."""
        for i in range(3):
            coordinator.adapt_to_user_behavior(bug_fix_event(i))

        assert container.system2.quality_threshold == pytest.approx(0.75)
        assert coordinator.behavior_patterns[-1].kind == "quality_focus"

    def test_listens_to_drained_events(self, coordinator, container):
        """Drained engine events feed behaviour adaptation."""
        for i in range(3):
            container.engine.store({"kind": "bug_fix", "data": {"bug_type": f"bug {i}"}})
        container.engine.flush()

        assert container.system2.quality_threshold == pytest.approx(0.75)


class TestConflicts:
    def orphan_trace(self, coordinator, container) -> str:
        node_id = promote_ready_node(container.system1)
        coordinator.synchronize_systems()
        (trace_id,) = container.system2.traces
        container.system1.remove_node(node_id)
        return trace_id

    def test_no_conflicts(self, coordinator):
        """Consistent stores have no conflicts."""
        assert coordinator.detect_conflicts() == []
        assert coordinator.resolve_conflicts() == []

    def test_orphan_trace_detected(self, coordinator, container):
        """Traces derived from removed knowledge are inconsistent."""
        trace_id = self.orphan_trace(coordinator, container)

        (conflict,) = coordinator.detect_conflicts()

        assert conflict.type == ConflictType.DATA_INCONSISTENCY
        assert conflict.system2_value == [trace_id]

    def test_orphans_removed_with_system1_priority(self, coordinator, container):
        """System 1 priority deletes orphaned traces."""
        coordinator.config.conflict_resolution_strategy = ConflictStrategy.SYSTEM1_PRIORITY
        self.orphan_trace(coordinator, container)

        (resolution,) = coordinator.resolve_conflicts()

        assert resolution.success is True
        assert resolution.strategy == ConflictStrategy.SYSTEM1_PRIORITY
        assert container.system2.traces == {}

    def test_orphans_kept_with_system2_priority(self, coordinator, container):
        """System 2 priority keeps orphans as standalone traces."""
        coordinator.config.conflict_resolution_strategy = ConflictStrategy.SYSTEM2_PRIORITY
        trace_id = self.orphan_trace(coordinator, container)

        coordinator.resolve_conflicts()

        assert container.system2.traces[trace_id].source_key is None
        assert coordinator.detect_conflicts() == []

    def test_balanced_removes_weak_orphans(self, coordinator, container):
        """Balanced resolution drops orphans below the quality bar."""
        container.engine.config.system2.quality_threshold = 0.95
        self.orphan_trace(coordinator, container)

        resolutions = coordinator.resolve_conflicts()

        assert [r.conflict_type for r in resolutions] == [
            ConflictType.DATA_INCONSISTENCY,
            ConflictType.PREFERENCE_MISMATCH,
        ]
        assert container.system2.traces == {}

    @pytest.mark.parametrize(
        "strategy,target",
        [
            (ConflictStrategy.SYSTEM1_PRIORITY, 0.9),
            (ConflictStrategy.SYSTEM2_PRIORITY, 0.7),
            (ConflictStrategy.BALANCED, 0.8),
        ],
    )
    def test_preference_mismatch(self, coordinator, container, strategy, target):
        """The quality bars are aligned according to the strategy."""
        coordinator.config.conflict_resolution_strategy = strategy
        container.system1.set_preference("quality_standards.min_quality", 0.9)

        (resolution,) = coordinator.resolve_conflicts()

        assert resolution.conflict_type == ConflictType.PREFERENCE_MISMATCH
        assert container.system2.quality_threshold == pytest.approx(target)
        assert container.system1.preferences.quality_standards.min_quality == pytest.approx(
            target
        )
        assert coordinator.detect_conflicts() == []

    def low_quality_history(self, container, effectiveness: float = 0.9) -> None:
        for _ in range(5):
            trace = container.system2.start_trace({"problem": "p"})
            container.system2.complete_trace(trace.id, "done", 0.5)
        container.system1.add_code_pattern("p", "python", effectiveness=effectiveness)

    def test_quality_threshold_balanced(self, coordinator, container):
        """Balanced resolution relaxes the threshold by half a step."""
        self.low_quality_history(container)

        (resolution,) = coordinator.resolve_conflicts()

        assert resolution.conflict_type == ConflictType.QUALITY_THRESHOLD
        assert container.system2.quality_threshold == pytest.approx(0.675)

    def test_quality_threshold_system2_priority(self, coordinator, container):
        """System 2 priority lowers pattern effectiveness instead."""
        coordinator.config.conflict_resolution_strategy = ConflictStrategy.SYSTEM2_PRIORITY
        self.low_quality_history(container)

        coordinator.resolve_conflicts()

        (pattern,) = container.system1.patterns.code_patterns.values()
        assert pattern.effectiveness == pytest.approx(0.85)
        assert container.system2.quality_threshold == pytest.approx(0.7)

    def test_effective_patterns_required(self, coordinator, container):
        """Low pattern effectiveness is no conflict."""
        self.low_quality_history(container, effectiveness=0.4)
        assert coordinator.detect_conflicts() == []

    def test_performance_tradeoff(self, coordinator, container):
        """Slow queries with a short TTL raise the TTL."""
        coordinator.config.latency_target_ms = -1.0
        container.engine.update_config({"performance": {"cache_ttl": 100}})
        container.engine.store({"kind": "bug_fix", "data": {}})

        (resolution,) = coordinator.resolve_conflicts()

        assert resolution.conflict_type == ConflictType.PERFORMANCE_TRADEOFF
        assert container.engine.config.performance.cache_ttl == pytest.approx(150.0)

    def test_one_resolution_per_conflict(self, coordinator, container):
        """Every detected conflict gets exactly one resolution."""
        coordinator.config.latency_target_ms = -1.0
        container.engine.update_config({"performance": {"cache_ttl": 100}})
        container.engine.store({"kind": "bug_fix", "data": {}})
        container.system1.set_preference("quality_standards.min_quality", 0.9)
        conflicts = coordinator.detect_conflicts()

        resolutions = coordinator.resolve_conflicts()

        assert [r.conflict_type for r in resolutions] == [c.type for c in conflicts]
        assert len({r.id for r in resolutions}) == len(resolutions)
        assert coordinator.get_metrics().conflicts_resolved == 2

    def test_resolution_failure_recorded(self, coordinator, container, monkeypatch):
        """A failing resolution is recorded as unsuccessful."""

        def explode(conflict, strategy):
            raise RuntimeError("cannot resolve")

        monkeypatch.setattr(coordinator, "_resolve", explode)
        container.system1.set_preference("quality_standards.min_quality", 0.9)

        (resolution,) = coordinator.resolve_conflicts()

        assert resolution.success is False
        assert resolution.confidence == 0.0
        metrics = coordinator.get_metrics()
        assert metrics.failed_items == 1
        assert metrics.conflicts_resolved == 0


class TestCycles:
    def test_maintenance_cycle(self, coordinator):
        """A full cycle runs every phase and returns to idle."""
        result = coordinator.run_maintenance_cycle()

        assert result["cancelled"] is False
        assert len(result["sync"].sync_points) == 4
        assert result["recommendations"] == []
        assert result["resolutions"] == []
        assert coordinator.state == CoordinatorState.IDLE

    def test_clear_cancels_cycle(self, coordinator, container, monkeypatch):
        """Clearing memory mid-cycle stops the remaining phases."""

        def clear_during_transfer():
            container.engine.clear_memory()
            return 0

        monkeypatch.setattr(coordinator, "_transfer_knowledge", clear_during_transfer)

        result = coordinator.run_maintenance_cycle()

        assert result["cancelled"] is True
        assert result["sync"].cancelled is True
        assert len(result["sync"].sync_points) == 1
        assert coordinator.state == CoordinatorState.IDLE

    def test_clear_resets_audit(self, coordinator, container):
        """Clearing memory forgets transfers and audit trails."""
        coordinator.synchronize_systems()
        container.engine.clear_memory()

        assert coordinator.sync_points == []
        assert coordinator.get_metrics().sync_operations == 0


class TestMetrics:
    def test_healthy_by_default(self, coordinator):
        """A quiet system is in excellent health."""
        assert coordinator.get_metrics().system_health == SystemHealth.EXCELLENT

    def test_errors_reduce_health(self, coordinator, container, monkeypatch):
        """A high error rate degrades health."""

        def explode(*args, **kwargs):
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(container.engine.system1, "search_nodes", explode)
        container.engine.query(
            {"type": QueryType.KNOWLEDGE, "query": "x", "urgency": Priority.CRITICAL}
        )

        assert coordinator.get_metrics().system_health == SystemHealth.FAIR

    def test_sync_metrics(self, coordinator, container):
        """Sync runs and transfers are counted."""
        promote_ready_node(container.system1)
        coordinator.synchronize_systems()

        metrics = coordinator.get_metrics()
        assert metrics.sync_operations == 1
        assert metrics.cross_layer_transfers == 1
        assert metrics.average_sync_ms >= 0.0
