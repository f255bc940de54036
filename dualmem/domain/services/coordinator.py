"""Memory Coordinator - keeps the two stores consistent and tuned.

A maintenance cycle moves through Idle -> Syncing -> Optimizing ->
ConflictCheck -> Idle. Every phase runs under the engine's structural
lock, so sync and optimization never mutate a store at the same time.
Each transfer, recommendation and conflict is handled on its own: one
failure is logged and counted and the rest of the batch continues.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ...config import CoordinatorConfig
from ...worker import PeriodicTask
from ..models import (
    BehaviorPattern,
    CacheStrategy,
    ConflictResolution,
    ConflictStrategy,
    ConflictType,
    CoordinationMetrics,
    CoordinatorState,
    EnhancementType,
    ImpactAssessment,
    Level,
    MemoryEvent,
    MemoryEventKind,
    OptimizationRecommendation,
    ReasoningProfile,
    StepInput,
    StepType,
    SyncPoint,
    SynchronizationReport,
    SystemConflict,
    SystemHealth,
    TransferType,
)
from .engine import DualMemoryEngine
from .system1 import System1Store
from .system2 import System2Store

logger = logging.getLogger(__name__)

# Knowledge worth turning into reasoning context
PROMOTION_MIN_CONFIDENCE = 0.8
PROMOTION_MIN_ACCESS = 5
PROMOTION_BATCH = 20

FAILING_COMMAND_MIN_COUNT = 3
FAILING_COMMAND_MAX_SUCCESS = 0.5

BEHAVIOR_MIN_OCCURRENCES = 3
QUALITY_THRESHOLD_STEP = 0.05
QUALITY_THRESHOLD_CEILING = 0.95
QUALITY_THRESHOLD_FLOOR = 0.5
PREFERENCE_TOLERANCE = 0.05

SLOW_SINGLE_SYSTEM_MIN = 5

MAX_CACHE_TTL = 3600.0
MIN_FRESH_CACHE_TTL = 300.0

EXPLANATION_STEPS = {"brief": 1, "shallow": 1, "moderate": 2, "detailed": 3, "deep": 3}

KNOWLEDGE_SOURCE_PREFIX = "knowledge:"

_RECOMMENDATION_TYPES = {
    "cache": EnhancementType.PERFORMANCE,
    "system1": EnhancementType.PERFORMANCE,
    "queue": EnhancementType.PERFORMANCE,
    "routing": EnhancementType.PERFORMANCE,
    "errors": EnhancementType.RELIABILITY,
    "system2": EnhancementType.QUALITY,
    "adaptation": EnhancementType.USABILITY,
}


def _content_hash(*parts: Any) -> str:
    return hashlib.sha256("\0".join(str(p) for p in parts).encode()).hexdigest()[:16]


class MemoryCoordinator:
    """Synchronizes, optimizes and reconciles System 1 and System 2."""

    def __init__(
        self,
        engine: DualMemoryEngine,
        config: CoordinatorConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.engine = engine
        self.config = config or engine.config.coordinator
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = CoordinatorState.IDLE
        self._tasks: list[PeriodicTask] = []
        self.reset()

        engine.add_listener(self.adapt_to_user_behavior)
        engine.add_clear_hook(self.reset)

    def reset(self) -> None:
        """Forget transfer hashes, audit trails and counters."""
        self.sync_points: list[SyncPoint] = []
        self.recommendations: list[OptimizationRecommendation] = []
        self.resolutions: list[ConflictResolution] = []
        self.behavior_patterns: list[BehaviorPattern] = []
        self._recent_events: list[MemoryEvent] = []
        self._transferred: set[str] = set()
        self._last_quality_key: str | None = None
        self._sequence = 0
        self._metrics = CoordinationMetrics()
        self._sync_durations: list[float] = []
        self.state = CoordinatorState.IDLE

    @property
    def s1(self) -> System1Store:
        return self.engine.system1

    @property
    def s2(self) -> System2Store:
        return self.engine.system2

    def _next_id(self, prefix: str) -> str:
        self._sequence += 1
        return f"{prefix}:{self._sequence:05d}"

    def _audit(self, trail: list[Any], item: Any) -> None:
        trail.append(item)
        overflow = len(trail) - max(self.config.audit_retention, 0)
        if overflow > 0:
            del trail[:overflow]

    # =========================================================================
    # Synchronization
    # =========================================================================

    def synchronize_systems(self, epoch: int | None = None) -> SynchronizationReport:
        """Run the four cross-layer transfers.

        Re-running with unchanged source data performs no target writes.

        Args:
            epoch: Engine epoch at cycle start; a mismatch cancels the run.
        """
        start = time.perf_counter()
        report = SynchronizationReport()
        transfers = [
            (TransferType.KNOWLEDGE_TO_REASONING, self._transfer_knowledge),
            (TransferType.QUALITY_TO_PATTERNS, self._transfer_quality),
            (TransferType.PREFERENCES, self._transfer_preferences),
            (TransferType.LEARNING_DATA, self._transfer_learning_data),
        ]
        with self.engine.lock:
            for transfer_type, transfer in transfers:
                if epoch is not None and epoch != self.engine.epoch:
                    report.cancelled = True
                    break
                t0 = time.perf_counter()
                try:
                    changes = transfer()
                    point = SyncPoint(
                        id=self._next_id("sync"),
                        transfer_type=transfer_type,
                        timestamp=self._clock(),
                        latency_ms=(time.perf_counter() - t0) * 1000,
                        changes=changes,
                    )
                except Exception as e:
                    logger.warning(f"Sync transfer {transfer_type.value} failed: {e}")
                    self._metrics.failed_items += 1
                    point = SyncPoint(
                        id=self._next_id("sync"),
                        transfer_type=transfer_type,
                        timestamp=self._clock(),
                        latency_ms=(time.perf_counter() - t0) * 1000,
                        success=False,
                        error=str(e),
                    )
                report.sync_points.append(point)
                self._audit(self.sync_points, point)

        report.total_changes = sum(p.changes for p in report.sync_points)
        report.success = all(p.success for p in report.sync_points)
        report.duration_ms = (time.perf_counter() - start) * 1000

        self._metrics.sync_operations += 1
        self._metrics.cross_layer_transfers += report.total_changes
        self._sync_durations.append(report.duration_ms)
        self._sync_durations = self._sync_durations[-100:]
        logger.info(
            f"Synchronized systems: {report.total_changes} changes "
            f"in {report.duration_ms:.1f}ms"
        )
        return report

    def _transfer_knowledge(self) -> int:
        candidates = [
            n
            for n in self.s1.graph.nodes.values()
            if n.confidence >= PROMOTION_MIN_CONFIDENCE
            and n.access_count >= PROMOTION_MIN_ACCESS
        ]
        candidates.sort(key=lambda n: (-n.confidence, -n.access_count, n.id))
        existing = {t.source_key for t in self.s2.traces.values() if t.source_key}

        changes = 0
        for node in candidates[:PROMOTION_BATCH]:
            key = f"{KNOWLEDGE_SOURCE_PREFIX}{node.id}:{_content_hash(node.name, node.content)}"
            if key in self._transferred or key in existing:
                self._transferred.add(key)
                continue
            trace = self.s2.start_trace(
                {"problem": f"Apply knowledge: {node.name}"}, source_key=key
            )
            self.s2.add_step(
                trace.id,
                StepInput(
                    type=StepType.ANALYSIS,
                    description="Frequently used System 1 knowledge",
                    input=node.content[:500],
                    output=(
                        f"{node.kind.value} '{node.name}' used {node.access_count} times "
                        f"with confidence {node.confidence:.2f}"
                    ),
                ),
            )
            self.s2.complete_trace(
                trace.id,
                conclusion=f"Validated frequently used knowledge '{node.name}'",
                confidence=node.confidence,
            )
            self._transferred.add(key)
            changes += 1
        return changes

    def _transfer_quality(self) -> int:
        metrics = self.s2.quality_metrics
        if metrics.code_samples == 0:
            return 0
        code = metrics.code_quality
        scores = {
            "maintainability": code.maintainability,
            "readability": code.readability,
            "testability": code.testability,
            "performance": code.performance,
            "security": code.security,
        }
        focus = sorted(name for name, score in scores.items() if score < 70)
        key = _content_hash(*focus)
        if key == self._last_quality_key:
            return 0
        self._last_quality_key = key
        if self.s1.preferences.quality_standards.focus == focus:
            return 0
        self.s1.update_user_preferences({"quality_standards": {"focus": focus}})
        return 1

    def _transfer_preferences(self) -> int:
        prefs = self.s1.preferences
        depth = prefs.communication.explanation_depth
        profile = ReasoningProfile(
            explanation_depth=depth,
            prefers_reasoning=prefs.learning_style.prefers_reasoning,
            min_steps=EXPLANATION_STEPS.get(depth, 2),
        )
        return 1 if self.s2.set_reasoning_profile(profile) else 0

    def _transfer_learning_data(self) -> int:
        changes = 0
        for command, entry in sorted(self.s1.command_history.items()):
            if (
                entry.count < FAILING_COMMAND_MIN_COUNT
                or entry.success_rate >= FAILING_COMMAND_MAX_SUCCESS
            ):
                continue
            key = f"command-failure:{command}"
            if key in self._transferred or self.s2.has_reflection(key):
                self._transferred.add(key)
                continue
            self.s2.add_reflection_entry(
                f"Repeated failures: {command}",
                f"'{command}' succeeded {entry.success_rate:.0%} of {entry.count} runs",
                "A low success rate points at a usage or tooling problem",
                f"Improve guidance for '{command}'",
                confidence=0.75,
                source_key=key,
            )
            self._transferred.add(key)
            changes += 1
        return changes

    # =========================================================================
    # Optimization
    # =========================================================================

    def _recommend(
        self,
        target: str,
        description: str,
        benefit: float,
        effort: float,
        risk: float,
        action: str | None = None,
        parameters: dict[str, Any] | None = None,
    ) -> OptimizationRecommendation:
        return OptimizationRecommendation(
            id=self._next_id("opt"),
            target=target,
            description=description,
            benefit=benefit,
            effort=effort,
            risk=risk,
            priority=benefit / effort,
            automated=action is not None,
            action=action,
            parameters=parameters or {},
            timestamp=self._clock(),
        )

    def _build_recommendations(self) -> list[OptimizationRecommendation]:
        metrics = self.engine.get_metrics()
        perf = self.engine.config.performance
        s1_config = self.s1.config
        recs: list[OptimizationRecommendation] = []

        if metrics.total_operations and metrics.average_latency_ms > self.config.latency_target_ms:
            if perf.cache_ttl < MAX_CACHE_TTL:
                recs.append(
                    self._recommend(
                        "cache",
                        "Extend the response cache TTL to cut query latency",
                        benefit=7,
                        effort=2,
                        risk=1,
                        action="update_config",
                        parameters={
                            "performance": {"cache_ttl": min(perf.cache_ttl * 1.5, MAX_CACHE_TTL)}
                        },
                    )
                )

        lookups = metrics.cache_hits + metrics.cache_misses
        if (
            lookups >= 10
            and metrics.cache_hit_rate < 0.3
            and perf.cache_strategy != CacheStrategy.ADAPTIVE
        ):
            recs.append(
                self._recommend(
                    "cache",
                    "Switch the response cache to adaptive eviction",
                    benefit=5,
                    effort=2,
                    risk=2,
                    action="update_config",
                    parameters={"performance": {"cache_strategy": "adaptive"}},
                )
            )

        if perf.max_cache_entries and metrics.cache_size >= 0.9 * perf.max_cache_entries:
            recs.append(
                self._recommend(
                    "cache",
                    "Grow the response cache",
                    benefit=4,
                    effort=1,
                    risk=2,
                    action="update_config",
                    parameters={"performance": {"max_cache_entries": perf.max_cache_entries * 2}},
                )
            )

        capacity = s1_config.max_knowledge_nodes
        if capacity and len(self.s1.graph) > 0.9 * capacity:
            recs.append(
                self._recommend(
                    "system1",
                    "Compress System 1 knowledge before it reaches capacity",
                    benefit=6,
                    effort=3,
                    risk=2,
                    action="compress_memory",
                )
            )

        if metrics.total_operations >= 10 and metrics.error_rate > 0.05:
            recs.append(
                self._recommend(
                    "errors",
                    "Investigate elevated memory operation error rate",
                    benefit=8,
                    effort=5,
                    risk=4,
                )
            )

        if metrics.slow_single_system_operations >= SLOW_SINGLE_SYSTEM_MIN:
            recs.append(
                self._recommend(
                    "routing",
                    f"Single-system queries exceed the "
                    f"{perf.single_system_latency_ms:g} ms latency target",
                    benefit=6,
                    effort=4,
                    risk=3,
                )
            )

        if metrics.queue_size > perf.batch_size * 5:
            recs.append(
                self._recommend(
                    "queue",
                    "Increase the event drain batch size",
                    benefit=6,
                    effort=1,
                    risk=2,
                    action="update_config",
                    parameters={"performance": {"batch_size": min(perf.batch_size * 2, 1000)}},
                )
            )

        review = sum(
            1 for t in self.s2.traces.values() if t.sealed and t.metadata.review_required
        )
        if review >= 10:
            recs.append(
                self._recommend(
                    "system2",
                    "Review low-quality reasoning traces",
                    benefit=6,
                    effort=4,
                    risk=1,
                )
            )

        if self._metrics.adaptation_events >= 10:
            recs.append(
                self._recommend(
                    "adaptation",
                    "Review accumulated user-behaviour adaptations",
                    benefit=4,
                    effort=3,
                    risk=1,
                )
            )

        recs.sort(key=lambda r: (-r.priority, r.risk, r.id))
        return recs

    def _apply(self, rec: OptimizationRecommendation) -> None:
        if rec.action == "update_config":
            self.engine.update_config(rec.parameters)
        elif rec.action == "compress_memory":
            self.s1.compress_memory()
        else:
            raise ValueError(f"Unknown optimization action: {rec.action}")

    def _surface(self, rec: OptimizationRecommendation) -> None:
        enhancement = self.s2.find_open_enhancement(rec.description)
        if enhancement is None:
            enhancement = self.s2.propose_enhancement(
                _RECOMMENDATION_TYPES.get(rec.target, EnhancementType.PERFORMANCE),
                rec.description,
                ImpactAssessment(
                    benefit_score=rec.benefit,
                    effort_score=rec.effort,
                    risk_score=rec.risk,
                    affected_components=[rec.target],
                ),
                priority=min(max(rec.benefit, 1.0), 10.0),
                source="coordinator",
            )
        rec.enhancement_id = enhancement.id

    def optimize_performance(self) -> list[OptimizationRecommendation]:
        """Rank recommendations and apply the safe automated ones.

        Automated recommendations below the risk threshold are applied at
        once; everything else is mirrored as a System 2 enhancement.
        """
        with self.engine.lock:
            recs = self._build_recommendations()
            for rec in recs:
                try:
                    if rec.automated and rec.risk < self.config.automation_risk_threshold:
                        self._apply(rec)
                        rec.applied = True
                        self._metrics.applied_optimizations += 1
                    else:
                        self._surface(rec)
                except Exception as e:
                    logger.warning(f"Optimization {rec.id} ({rec.description}) failed: {e}")
                    rec.error = str(e)
                    self._metrics.failed_items += 1
                self._audit(self.recommendations, rec)

        self._metrics.optimization_runs += 1
        logger.info(
            f"Optimization produced {len(recs)} recommendations, "
            f"{sum(1 for r in recs if r.applied)} applied"
        )
        return recs

    # =========================================================================
    # Behaviour adaptation
    # =========================================================================

    def _confidence(self, occurrences: int) -> float:
        return min(1.0, 0.5 + 0.1 * occurrences)

    def adapt_to_user_behavior(self, event: MemoryEvent) -> list[BehaviorPattern]:
        """Look for repeated behaviour in recent events and adapt the stores.

        Detected patterns:
        - the same suggestion type rejected (or accepted) repeatedly, which
          nudges its System 1 weight by ``learning_rate``
        - repeated bug fixes or quality work, which raises the System 2
          quality threshold

        Events behind an applied adaptation are consumed so the same
        evidence is not applied twice.

        Returns:
            Patterns detected for this event (applied or not).
        """
        with self.engine.lock:
            self._recent_events.append(event)
            window = max(self.config.behavior_window, 1)
            self._recent_events = self._recent_events[-window:]

            detected = self._detect_feedback_patterns()
            detected.extend(self._detect_quality_patterns())
        for pattern in detected:
            self._audit(self.behavior_patterns, pattern)
        return detected

    def _detect_feedback_patterns(self) -> list[BehaviorPattern]:
        feedback: Counter[tuple[str, bool]] = Counter()
        for e in self._recent_events:
            subject = e.data.get("suggestion_type")
            if subject and "accepted" in e.data:
                feedback[(subject, bool(e.data["accepted"]))] += 1

        detected = []
        for (subject, accepted), occurrences in sorted(feedback.items()):
            if occurrences < BEHAVIOR_MIN_OCCURRENCES:
                continue
            pattern = BehaviorPattern(
                kind="suggestion_accepted" if accepted else "suggestion_rejected",
                subject=subject,
                occurrences=occurrences,
                confidence=self._confidence(occurrences),
            )
            if pattern.confidence >= self.config.adaptation_threshold:
                delta = self.config.learning_rate if accepted else -self.config.learning_rate
                weight = self.s1.adjust_suggestion_weight(subject, delta)
                pattern.adaptation = f"suggestion weight for {subject} -> {weight:.2f}"
                self._consume(
                    lambda e, s=subject, a=accepted: e.data.get("suggestion_type") == s
                    and "accepted" in e.data
                    and bool(e.data["accepted"]) == a
                )
                self._metrics.adaptation_events += 1
            detected.append(pattern)
        return detected

    def _detect_quality_patterns(self) -> list[BehaviorPattern]:
        quality_kinds = (MemoryEventKind.BUG_FIX, MemoryEventKind.QUALITY_IMPROVEMENT)
        occurrences = sum(1 for e in self._recent_events if e.kind in quality_kinds)
        if occurrences < BEHAVIOR_MIN_OCCURRENCES:
            return []
        pattern = BehaviorPattern(
            kind="quality_focus",
            subject="system2",
            occurrences=occurrences,
            confidence=self._confidence(occurrences),
        )
        if pattern.confidence >= self.config.adaptation_threshold:
            s2_config = self.s2.config
            s2_config.quality_threshold = min(
                s2_config.quality_threshold + QUALITY_THRESHOLD_STEP, QUALITY_THRESHOLD_CEILING
            )
            pattern.adaptation = f"quality threshold -> {s2_config.quality_threshold:.2f}"
            self._consume(lambda e: e.kind in quality_kinds)
            self._metrics.adaptation_events += 1
        return [pattern]

    def _consume(self, predicate: Callable[[MemoryEvent], bool]) -> None:
        self._recent_events = [e for e in self._recent_events if not predicate(e)]

    # =========================================================================
    # Conflicts
    # =========================================================================

    @staticmethod
    def _source_node_id(source_key: str) -> str:
        """Node id inside a ``knowledge:<node id>:<hash>`` source key."""
        return source_key[len(KNOWLEDGE_SOURCE_PREFIX) :].rsplit(":", 1)[0]

    def detect_conflicts(self) -> list[SystemConflict]:
        conflicts: list[SystemConflict] = []
        s1, s2 = self.s1, self.s2

        orphans = sorted(
            t.id
            for t in s2.traces.values()
            if t.source_key
            and t.source_key.startswith(KNOWLEDGE_SOURCE_PREFIX)
            and self._source_node_id(t.source_key) not in s1.graph
        )
        if orphans:
            conflicts.append(
                SystemConflict(
                    id=self._next_id("conflict"),
                    type=ConflictType.DATA_INCONSISTENCY,
                    description="Reasoning traces derived from knowledge System 1 no longer holds",
                    system1_value=None,
                    system2_value=orphans,
                    severity=Level.MEDIUM,
                )
            )

        min_quality = s1.preferences.quality_standards.min_quality
        threshold = s2.quality_threshold
        if abs(min_quality - threshold) > PREFERENCE_TOLERANCE:
            conflicts.append(
                SystemConflict(
                    id=self._next_id("conflict"),
                    type=ConflictType.PREFERENCE_MISMATCH,
                    description="User minimum quality differs from the reasoning quality threshold",
                    system1_value=min_quality,
                    system2_value=threshold,
                    severity=Level.LOW,
                )
            )

        sealed = [t for t in s2.traces.values() if t.sealed]
        patterns = list(s1.patterns.code_patterns.values())
        if len(sealed) >= 5 and patterns:
            below = sum(1 for t in sealed if t.metadata.quality_score < threshold) / len(sealed)
            effectiveness = sum(p.effectiveness for p in patterns) / len(patterns)
            if below > 0.5 and effectiveness >= 0.7:
                conflicts.append(
                    SystemConflict(
                        id=self._next_id("conflict"),
                        type=ConflictType.QUALITY_THRESHOLD,
                        description=(
                            "System 2 rates most reasoning low "
                            "while System 1 patterns perform well"
                        ),
                        system1_value=effectiveness,
                        system2_value=below,
                        severity=Level.MEDIUM,
                    )
                )

        metrics = self.engine.get_metrics()
        ttl = self.engine.config.performance.cache_ttl
        if (
            metrics.total_operations
            and metrics.average_latency_ms > self.config.latency_target_ms
            and ttl < MIN_FRESH_CACHE_TTL
        ):
            conflicts.append(
                SystemConflict(
                    id=self._next_id("conflict"),
                    type=ConflictType.PERFORMANCE_TRADEOFF,
                    description=(
                        "Query latency is above target "
                        "while the cache TTL favours freshness"
                    ),
                    system1_value=metrics.average_latency_ms,
                    system2_value=ttl,
                    severity=Level.HIGH,
                )
            )
        return conflicts

    def _resolve(self, conflict: SystemConflict, strategy: ConflictStrategy) -> tuple[str, float]:
        s1, s2 = self.s1, self.s2

        if conflict.type == ConflictType.DATA_INCONSISTENCY:
            orphans: list[str] = conflict.system2_value
            if strategy == ConflictStrategy.SYSTEM1_PRIORITY:
                removed = s2.remove_traces(orphans)
                return f"Removed {removed} traces derived from missing knowledge", 0.8
            if strategy == ConflictStrategy.SYSTEM2_PRIORITY:
                kept = s2.detach_traces(orphans)
                return f"Kept {kept} derived traces as standalone reasoning", 0.8
            weak = [
                t
                for t in orphans
                if s2.traces[t].metadata.quality_score < s2.quality_threshold
            ]
            removed = s2.remove_traces(weak)
            kept = s2.detach_traces([t for t in orphans if t not in weak])
            return f"Removed {removed} weak traces and kept {kept}", 0.7

        if conflict.type == ConflictType.PREFERENCE_MISMATCH:
            min_quality, threshold = conflict.system1_value, conflict.system2_value
            if strategy == ConflictStrategy.SYSTEM1_PRIORITY:
                target = min_quality
            elif strategy == ConflictStrategy.SYSTEM2_PRIORITY:
                target = threshold
            else:
                target = round((min_quality + threshold) / 2, 3)
            s2.config.quality_threshold = target
            s1.set_preference("quality_standards.min_quality", target, confidence=0.7)
            return f"Aligned quality bar at {target:.2f}", 0.75

        if conflict.type == ConflictType.QUALITY_THRESHOLD:
            if strategy == ConflictStrategy.SYSTEM2_PRIORITY:
                for pattern_id in sorted(s1.patterns.code_patterns):
                    s1.patterns.record_outcome(pattern_id, success=False)
                return "Lowered pattern effectiveness to match reasoning quality", 0.6
            step = QUALITY_THRESHOLD_STEP
            if strategy == ConflictStrategy.BALANCED:
                step /= 2
            s2.config.quality_threshold = max(
                s2.config.quality_threshold - step, QUALITY_THRESHOLD_FLOOR
            )
            return f"Relaxed quality threshold to {s2.config.quality_threshold:.3f}", 0.65

        ttl = self.engine.config.performance.cache_ttl
        if strategy == ConflictStrategy.SYSTEM2_PRIORITY:
            return f"Kept cache TTL at {ttl:.0f}s to favour fresh results", 0.6
        factor = 2.0 if strategy == ConflictStrategy.SYSTEM1_PRIORITY else 1.5
        new_ttl = min(ttl * factor, MAX_CACHE_TTL)
        self.engine.update_config({"performance": {"cache_ttl": new_ttl}})
        return f"Raised cache TTL to {new_ttl:.0f}s", 0.7

    def resolve_conflicts(self) -> list[ConflictResolution]:
        """Detect and resolve conflicts; one resolution record per conflict."""
        strategy = ConflictStrategy(self.config.conflict_resolution_strategy)
        resolutions = []
        with self.engine.lock:
            for conflict in self.detect_conflicts():
                try:
                    text, confidence = self._resolve(conflict, strategy)
                    success = True
                except Exception as e:
                    logger.warning(f"Failed to resolve {conflict.type.value} conflict: {e}")
                    self._metrics.failed_items += 1
                    text, confidence, success = f"Resolution failed: {e}", 0.0, False
                resolution = ConflictResolution(
                    id=self._next_id("resolution"),
                    conflict_id=conflict.id,
                    conflict_type=conflict.type,
                    strategy=strategy,
                    resolution=text,
                    confidence=confidence,
                    impact=conflict.severity,
                    success=success,
                    timestamp=self._clock(),
                )
                resolutions.append(resolution)
                self._audit(self.resolutions, resolution)
                if success:
                    self._metrics.conflicts_resolved += 1
        if resolutions:
            logger.info(f"Resolved {len(resolutions)} conflicts using {strategy.value}")
        return resolutions

    # =========================================================================
    # Cycles and lifecycle
    # =========================================================================

    def run_sync_cycle(self) -> SynchronizationReport:
        epoch = self.engine.epoch
        self.state = CoordinatorState.SYNCING
        try:
            return self.synchronize_systems(epoch)
        finally:
            self.state = CoordinatorState.IDLE

    def run_optimization_cycle(self) -> dict[str, Any]:
        epoch = self.engine.epoch
        result: dict[str, Any] = {"recommendations": [], "resolutions": [], "cancelled": False}
        try:
            self.state = CoordinatorState.OPTIMIZING
            result["recommendations"] = self.optimize_performance()
            if epoch != self.engine.epoch:
                result["cancelled"] = True
                return result
            self.state = CoordinatorState.CONFLICT_CHECK
            result["resolutions"] = self.resolve_conflicts()
            return result
        finally:
            self.state = CoordinatorState.IDLE

    def run_maintenance_cycle(self) -> dict[str, Any]:
        """Full Syncing -> Optimizing -> ConflictCheck pass.

        The cycle stops between phases if memory was cleared meanwhile.
        """
        epoch = self.engine.epoch
        report = self.run_sync_cycle()
        if report.cancelled or epoch != self.engine.epoch:
            return {"sync": report, "recommendations": [], "resolutions": [], "cancelled": True}
        result = self.run_optimization_cycle()
        result["sync"] = report
        result["cancelled"] = result["cancelled"] or epoch != self.engine.epoch
        return result

    def start(self) -> None:
        """Start the sync and optimization timers."""
        if not self._tasks:
            scheduler = self.engine.scheduler
            self._tasks = [
                scheduler.add(
                    "coordinator-sync", self.run_sync_cycle, lambda: self.config.sync_interval
                ),
                scheduler.add(
                    "coordinator-optimize",
                    self.run_optimization_cycle,
                    lambda: self.config.optimization_interval,
                ),
            ]
        for task in self._tasks:
            task.start()

    def stop(self) -> None:
        for task in self._tasks:
            task.stop()

    def get_metrics(self) -> CoordinationMetrics:
        metrics = self._metrics.model_copy()
        if self._sync_durations:
            metrics.average_sync_ms = sum(self._sync_durations) / len(self._sync_durations)
        metrics.system_health = self._health()
        return metrics

    def _health(self) -> SystemHealth:
        engine_metrics = self.engine.get_metrics()
        score = 0
        if engine_metrics.error_rate < 0.01:
            score += 2
        elif engine_metrics.error_rate < 0.05:
            score += 1
        if engine_metrics.average_latency_ms <= self.config.latency_target_ms:
            score += 1
        if self._metrics.failed_items == 0:
            score += 1
        return {4: SystemHealth.EXCELLENT, 3: SystemHealth.GOOD, 2: SystemHealth.FAIR}.get(
            score, SystemHealth.POOR
        )
