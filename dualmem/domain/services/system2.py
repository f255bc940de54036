"""System 2 Store - deliberate, structured, audit-oriented memory.

Owns reasoning traces, decision trees, quality metrics, enhancement
proposals and the reflection log. Quality heuristics are delegated to
pluggable scorers from ``brain.prefrontal`` so they can be calibrated
without touching store logic.

Unknown trace/tree/enhancement ids on write paths raise NotFoundError;
mutating a sealed trace or making an illegal status transition raises
InvalidStateError. Scoring failures degrade to a zero quality score.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ...brain.hippocampus.dynamics import lexical_similarity
from ...brain.prefrontal import (
    CodeQualityScorer,
    HeuristicCodeScorer,
    HeuristicReasoningScorer,
    ReasoningQualityScorer,
    ReasoningQualityWeights,
    aggregate_confidence,
    evaluate_tree,
)
from ...config import System2Config
from ..exceptions import InvalidStateError, NotFoundError, ValidationError
from ..models import (
    ActionItem,
    AlternativeReasoning,
    CodeQualityMetrics,
    Complexity,
    DecisionNode,
    DecisionNodeKind,
    DecisionResult,
    DecisionTree,
    DecisionTreeMetadata,
    Enhancement,
    EnhancementStatus,
    EnhancementType,
    Evidence,
    ImpactAssessment,
    MemoryEvent,
    MemoryEventKind,
    QualityMetrics,
    ReasoningContext,
    ReasoningMetadata,
    ReasoningProfile,
    ReasoningQualityMetrics,
    ReasoningStep,
    ReasoningTrace,
    ReflectionEntry,
    StepInput,
    StepType,
)

logger = logging.getLogger(__name__)

DERIVED_STEP_FIELDS = frozenset({"id", "confidence", "duration_ms", "dependencies"})

STEP_BASE_CONFIDENCE = {
    StepType.ANALYSIS: 0.7,
    StepType.INFERENCE: 0.6,
    StepType.EVALUATION: 0.8,
    StepType.SYNTHESIS: 0.5,
}

DOMAIN_KEYWORDS = [
    ("performance", ("performance", "optimization", "optimize", "slow", "latency")),
    ("security", ("security", "vulnerability", "injection", "auth")),
    ("architecture", ("architecture", "design", "refactor")),
    ("debugging", ("bug", "error", "exception", "crash", "fix")),
]

_STATUS_ORDER = [
    EnhancementStatus.PROPOSED,
    EnhancementStatus.APPROVED,
    EnhancementStatus.IN_PROGRESS,
    EnhancementStatus.COMPLETED,
]

_OPEN_STATUSES = (
    EnhancementStatus.PROPOSED,
    EnhancementStatus.APPROVED,
    EnhancementStatus.IN_PROGRESS,
)

# Share of the trace limit removed when the limit is exceeded
TRACE_EVICTION_SHARE = 0.2


def infer_complexity(context: ReasoningContext) -> Complexity:
    factors = [
        len(context.goals) > 3,
        len(context.constraints) > 2,
        len(context.assumptions) > 3,
        len(context.problem) > 500,
    ]
    score = sum(factors)
    if score == 0:
        return Complexity.SIMPLE
    if score == 1:
        return Complexity.MODERATE
    if score == 2:
        return Complexity.COMPLEX
    return Complexity.VERY_COMPLEX


def infer_domain(context: ReasoningContext) -> str:
    problem = context.problem.lower()
    for domain, keywords in DOMAIN_KEYWORDS:
        if any(keyword in problem for keyword in keywords):
            return domain
    return "general"


def is_valid_transition(current: EnhancementStatus, new: EnhancementStatus) -> bool:
    """Forward moves only; anything open may be rejected; rejected may be re-proposed."""
    if new == EnhancementStatus.REJECTED:
        return current in _OPEN_STATUSES
    if current == EnhancementStatus.REJECTED:
        return new == EnhancementStatus.PROPOSED
    return _STATUS_ORDER.index(new) > _STATUS_ORDER.index(current)


def _running_average(current: float, sample: float, count: int) -> float:
    return current + (sample - current) / count


class System2Store:
    """Deliberate reasoning memory."""

    def __init__(
        self,
        config: System2Config | None = None,
        clock: Callable[[], datetime] | None = None,
        code_scorer: CodeQualityScorer | None = None,
        reasoning_scorer: ReasoningQualityScorer | None = None,
        quality_weights: ReasoningQualityWeights | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: System 2 settings (read at use time).
            clock: Time source (default: UTC now).
            code_scorer: Code quality heuristics.
            reasoning_scorer: Reasoning quality heuristics.
            quality_weights: Weights combining reasoning sub-scores.
        """
        self.config = config or System2Config()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.code_scorer: CodeQualityScorer = code_scorer or HeuristicCodeScorer()
        self.reasoning_scorer: ReasoningQualityScorer = (
            reasoning_scorer or HeuristicReasoningScorer()
        )
        self.quality_weights = quality_weights or ReasoningQualityWeights()

        self.traces: dict[str, ReasoningTrace] = {}
        self.decision_trees: dict[str, DecisionTree] = {}
        self.enhancements: dict[str, Enhancement] = {}
        self.reflections: dict[str, ReflectionEntry] = {}
        self.quality_metrics = QualityMetrics()
        self.reasoning_profile = ReasoningProfile()
        self._quality_cache: dict[str, CodeQualityMetrics] = {}

        self._handlers: dict[MemoryEventKind, Callable[[MemoryEvent], bool]] = {
            MemoryEventKind.CODE_GENERATION: self._on_code_generation,
            MemoryEventKind.BUG_FIX: self._on_bug_fix,
            MemoryEventKind.QUALITY_IMPROVEMENT: self._on_quality_improvement,
        }

    @property
    def quality_threshold(self) -> float:
        return self.config.quality_threshold

    def _get_trace(self, trace_id: str) -> ReasoningTrace:
        trace = self.traces.get(trace_id)
        if trace is None:
            raise NotFoundError("ReasoningTrace", trace_id)
        return trace

    def _get_open_trace(self, trace_id: str) -> ReasoningTrace:
        trace = self._get_trace(trace_id)
        if trace.sealed:
            raise InvalidStateError("ReasoningTrace", trace_id, "trace is sealed")
        return trace

    # =========================================================================
    # Reasoning traces
    # =========================================================================

    def start_trace(
        self,
        context: ReasoningContext | dict[str, Any],
        initial_step: str | None = None,
        source_key: str | None = None,
    ) -> ReasoningTrace:
        """Open a new trace.

        Raises:
            ValidationError: If the context is malformed.
        """
        try:
            if isinstance(context, dict):
                context = ReasoningContext.model_validate(context)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid reasoning context: {e}") from e

        trace = ReasoningTrace(
            id=f"trace:{uuid4().hex[:12]}",
            timestamp=self._clock(),
            context=context,
            metadata=ReasoningMetadata(
                complexity=infer_complexity(context),
                domain=infer_domain(context),
            ),
            source_key=source_key,
        )
        self.traces[trace.id] = trace

        if initial_step:
            self.add_step(
                trace.id,
                StepInput(
                    type=StepType.ANALYSIS,
                    description="Initial problem analysis",
                    input=context.problem,
                    output=initial_step,
                ),
            )

        self._manage_trace_limit()
        return trace.model_copy(deep=True)

    def _step_confidence(self, step: StepInput, trace: ReasoningTrace) -> float:
        confidence = STEP_BASE_CONFIDENCE[step.type]
        if len(step.input) > 100:
            confidence += 0.1
        if len(step.output) > 100:
            confidence += 0.1
        if trace.metadata.complexity == Complexity.SIMPLE:
            confidence += 0.1
        elif trace.metadata.complexity == Complexity.VERY_COMPLEX:
            confidence -= 0.1
        return max(0.1, min(1.0, confidence))

    @staticmethod
    def _step_dependencies(step: StepInput, existing: list[ReasoningStep]) -> list[str]:
        dependencies = []
        for earlier in existing:
            head = earlier.output[:50].strip()
            if head and head in step.input:
                dependencies.append(earlier.id)
        return dependencies

    def add_step(
        self, trace_id: str, step: StepInput | dict[str, Any]
    ) -> ReasoningStep:
        """Append a step to an open trace.

        Raises:
            NotFoundError: If the trace does not exist.
            InvalidStateError: If the trace is sealed.
            ValidationError: If derived fields are supplied or the step is malformed.
        """
        trace = self._get_open_trace(trace_id)
        if isinstance(step, dict):
            derived = DERIVED_STEP_FIELDS & step.keys()
            if derived:
                raise ValidationError(f"Derived step fields supplied: {sorted(derived)}")
            try:
                step = StepInput.model_validate(step)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid reasoning step: {e}") from e

        now = self._clock()
        previous = trace.last_step_at or trace.timestamp
        recorded = ReasoningStep(
            id=f"{trace.id}:step:{len(trace.steps) + 1}",
            type=step.type,
            description=step.description,
            input=step.input,
            output=step.output,
            confidence=self._step_confidence(step, trace),
            duration_ms=max((now - previous).total_seconds() * 1000, 0.0),
            dependencies=self._step_dependencies(step, trace.steps),
        )
        trace.steps.append(recorded)
        trace.last_step_at = now
        if step.type.value not in trace.metadata.techniques:
            trace.metadata.techniques.append(step.type.value)
        return recorded.model_copy()

    def add_alternative(
        self, trace_id: str, alternative: AlternativeReasoning | dict[str, Any]
    ) -> AlternativeReasoning:
        """Attach an alternative; only allowed before the trace is sealed."""
        trace = self._get_open_trace(trace_id)
        try:
            if isinstance(alternative, dict):
                alternative = AlternativeReasoning.model_validate(alternative)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid alternative: {e}") from e
        alternative = alternative.model_copy(
            update={"id": f"{trace.id}:alt:{len(trace.alternatives) + 1}"}
        )
        trace.alternatives.append(alternative)
        return alternative.model_copy()

    def score_trace(self, trace: ReasoningTrace) -> tuple[float, ReasoningQualityMetrics | None]:
        """Quality of a trace; scorer failures degrade to (0.0, None)."""
        try:
            metrics = self.reasoning_scorer.score(trace, self.reasoning_profile)
            return self.quality_weights.combine(metrics), metrics
        except Exception as e:
            logger.warning(f"Reasoning quality scoring failed for {trace.id}: {e}")
            return 0.0, None

    def complete_trace(
        self, trace_id: str, conclusion: str, confidence: float
    ) -> ReasoningTrace:
        """Seal a trace and compute its quality.

        A quality below the threshold marks the trace for review and
        proposes a quality enhancement for its domain.

        Raises:
            NotFoundError: If the trace does not exist.
            InvalidStateError: If the trace is already sealed.
            ValidationError: If confidence is outside [0, 1].
        """
        trace = self._get_open_trace(trace_id)
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError(f"Confidence must be in [0, 1], got {confidence}")

        trace.conclusion = conclusion
        trace.confidence = confidence
        quality, metrics = self.score_trace(trace)
        trace.metadata.quality_score = quality
        trace.metadata.review_required = quality < self.quality_threshold
        trace.sealed = True
        trace.sealed_at = self._clock()

        if metrics is not None:
            self._record_reasoning_quality(metrics)
        if trace.metadata.review_required:
            self._propose_once(
                EnhancementType.QUALITY,
                f"Improve reasoning quality for {trace.metadata.domain} problems",
                ImpactAssessment(
                    benefit_score=7,
                    effort_score=5,
                    risk_score=2,
                    affected_components=["reasoning", "decision-making"],
                ),
                priority=6,
            )
        logger.debug(f"Sealed trace {trace.id} with quality {quality:.2f}")
        return trace.model_copy(deep=True)

    def get_trace(self, trace_id: str) -> ReasoningTrace | None:
        trace = self.traces.get(trace_id)
        return trace.model_copy(deep=True) if trace else None

    def search_traces(
        self,
        domain: str | None = None,
        complexity: Complexity | str | None = None,
        min_quality: float | None = None,
        timeframe: tuple[datetime, datetime] | None = None,
        limit: int = 10,
    ) -> list[ReasoningTrace]:
        """Filter traces, newest first, then by quality, then id."""
        results = [
            t
            for t in list(self.traces.values())
            if (domain is None or t.metadata.domain == domain)
            and (complexity is None or t.metadata.complexity == complexity)
            and (min_quality is None or t.metadata.quality_score >= min_quality)
            and (timeframe is None or timeframe[0] <= t.timestamp <= timeframe[1])
        ]
        results.sort(
            key=lambda t: (-t.timestamp.timestamp(), -t.metadata.quality_score, t.id)
        )
        return [t.model_copy(deep=True) for t in results[:limit]]

    def search_traces_by_text(self, text: str, limit: int = 10) -> list[ReasoningTrace]:
        scored = []
        for trace in list(self.traces.values()):
            haystack = f"{trace.context.problem} {trace.conclusion}"
            similarity = lexical_similarity(text, haystack)
            if similarity > 0:
                scored.append((similarity, trace))
        scored.sort(key=lambda item: (-item[0], -item[1].timestamp.timestamp(), item[1].id))
        return [t.model_copy(deep=True) for _, t in scored[:limit]]

    def flag_traces_for_review(self, threshold: float | None = None) -> list[str]:
        """Mark sealed traces below ``threshold`` for review."""
        threshold = self.quality_threshold if threshold is None else threshold
        flagged = []
        for trace_id, trace in sorted(self.traces.items()):
            if (
                trace.sealed
                and not trace.metadata.review_required
                and trace.metadata.quality_score < threshold
            ):
                trace.metadata.review_required = True
                flagged.append(trace_id)
        return flagged

    def remove_traces(self, trace_ids: list[str]) -> int:
        removed = 0
        for trace_id in trace_ids:
            if self.traces.pop(trace_id, None) is not None:
                removed += 1
        return removed

    def detach_traces(self, trace_ids: list[str]) -> int:
        """Forget which transfer created the given traces."""
        detached = 0
        for trace_id in trace_ids:
            trace = self.traces.get(trace_id)
            if trace is not None and trace.source_key is not None:
                trace.source_key = None
                detached += 1
        return detached

    def _manage_trace_limit(self) -> None:
        limit = self.config.max_reasoning_traces
        if len(self.traces) <= limit:
            return
        sealed = sorted(
            (t for t in self.traces.values() if t.sealed),
            key=lambda t: (t.metadata.quality_score, t.timestamp.timestamp(), t.id),
        )
        count = max(int(limit * TRACE_EVICTION_SHARE), len(self.traces) - limit)
        removed = self.remove_traces([t.id for t in sealed[:count]])
        logger.info(f"Trace limit exceeded; removed {removed} lowest-quality traces")

    # =========================================================================
    # Decision trees
    # =========================================================================

    def _get_tree(self, tree_id: str) -> DecisionTree:
        tree = self.decision_trees.get(tree_id)
        if tree is None:
            raise NotFoundError("DecisionTree", tree_id)
        return tree

    def get_tree_for_domain(self, domain: str) -> DecisionTree | None:
        for tree in self.decision_trees.values():
            if tree.metadata.domain == domain:
                return tree
        return None

    def create_decision_tree(
        self, domain: str, root_description: str, confidence: float = 0.8
    ) -> DecisionTree:
        """Create the tree for a domain (one tree per domain).

        If the domain already has a tree, that tree is returned unchanged.
        """
        existing = self.get_tree_for_domain(domain)
        if existing is not None:
            return existing

        root = DecisionNode(
            id="n0000",
            kind=DecisionNodeKind.CONDITION,
            description=root_description,
            confidence=confidence,
        )
        slug = re.sub(r"[^a-z0-9]+", "-", domain.lower()).strip("-") or "domain"
        tree = DecisionTree(
            id=f"tree:{slug}:{uuid4().hex[:6]}",
            root_id=root.id,
            nodes={root.id: root},
            metadata=DecisionTreeMetadata(domain=domain, last_updated=self._clock()),
        )
        self.decision_trees[tree.id] = tree
        return tree

    def add_decision_node(
        self,
        tree_id: str,
        parent_id: str,
        kind: DecisionNodeKind | str,
        description: str = "",
        condition: dict[str, Any] | None = None,
        confidence: float = 0.5,
    ) -> DecisionNode:
        """Grow a tree under ``parent_id``.

        Raises:
            NotFoundError: If the tree or parent node does not exist.
        """
        tree = self._get_tree(tree_id)
        parent = tree.nodes.get(parent_id)
        if parent is None:
            raise NotFoundError("DecisionNode", parent_id)
        try:
            node = DecisionNode(
                id=f"n{tree.next_index:04d}",
                kind=kind,
                description=description,
                condition=condition or {},
                parent_id=parent_id,
                confidence=confidence,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid decision node: {e}") from e
        tree.next_index += 1
        tree.nodes[node.id] = node
        parent.children.append(node.id)
        tree.metadata.last_updated = self._clock()
        return node

    def add_evidence(
        self, tree_id: str, node_id: str, evidence: Evidence | dict[str, Any]
    ) -> DecisionNode:
        """Attach evidence and recompute the node's confidence."""
        tree = self._get_tree(tree_id)
        node = tree.nodes.get(node_id)
        if node is None:
            raise NotFoundError("DecisionNode", node_id)
        try:
            if isinstance(evidence, dict):
                evidence = Evidence.model_validate(evidence)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid evidence: {e}") from e
        if evidence.timestamp is None:
            evidence = evidence.model_copy(update={"timestamp": self._clock()})
        node.evidence.append(evidence)
        node.confidence = aggregate_confidence(node.evidence)
        tree.metadata.last_updated = self._clock()
        return node

    def evaluate(self, tree_id: str, context: dict[str, Any]) -> DecisionResult:
        """Read-only walk of a tree against a context."""
        return evaluate_tree(self._get_tree(tree_id), context)

    # =========================================================================
    # Enhancements
    # =========================================================================

    def propose_enhancement(
        self,
        type: EnhancementType | str,
        description: str,
        impact: ImpactAssessment | dict[str, Any],
        priority: float = 5.0,
        source: str = "system2",
    ) -> Enhancement:
        """Record a proposal; low-risk, high-value ones are auto-approved."""
        now = self._clock()
        try:
            if isinstance(impact, dict):
                impact = ImpactAssessment.model_validate(impact)
            enhancement = Enhancement(
                id=f"enh:{uuid4().hex[:12]}",
                type=type,
                description=description,
                impact=impact,
                priority=priority,
                created_at=now,
                updated_at=now,
                source=source,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid enhancement: {e}") from e

        if (
            enhancement.impact.risk_score <= 3
            and enhancement.impact.benefit_score >= 7
            and enhancement.priority >= 7
        ):
            enhancement.status = EnhancementStatus.APPROVED
        self.enhancements[enhancement.id] = enhancement
        return enhancement

    def find_open_enhancement(self, description: str) -> Enhancement | None:
        for enhancement in self.enhancements.values():
            if enhancement.description == description and enhancement.status in _OPEN_STATUSES:
                return enhancement
        return None

    def _propose_once(
        self,
        type: EnhancementType,
        description: str,
        impact: ImpactAssessment,
        priority: float,
    ) -> Enhancement:
        existing = self.find_open_enhancement(description)
        if existing is not None:
            return existing
        return self.propose_enhancement(type, description, impact, priority)

    def update_enhancement_status(
        self, enhancement_id: str, status: EnhancementStatus | str
    ) -> Enhancement:
        """Move an enhancement through its lifecycle.

        Raises:
            NotFoundError: If the enhancement does not exist.
            InvalidStateError: On a backwards or terminal transition.
        """
        enhancement = self.enhancements.get(enhancement_id)
        if enhancement is None:
            raise NotFoundError("Enhancement", enhancement_id)
        try:
            status = EnhancementStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown enhancement status: {status}") from e

        if status == enhancement.status:
            return enhancement
        if not is_valid_transition(enhancement.status, status):
            raise InvalidStateError(
                "Enhancement",
                enhancement_id,
                f"cannot move from {enhancement.status.value} to {status.value}",
            )
        enhancement.status = status
        enhancement.updated_at = self._clock()
        return enhancement

    def get_enhancement(self, enhancement_id: str) -> Enhancement | None:
        return self.enhancements.get(enhancement_id)

    def get_enhancements_by_type(self, type: EnhancementType | str) -> list[Enhancement]:
        results = [e for e in self.enhancements.values() if e.type == type]
        results.sort(key=lambda e: (-e.priority, e.id))
        return results

    @property
    def improvement_suggestions(self) -> list[Enhancement]:
        """Proposed or approved enhancements, highest priority first."""
        results = [
            e
            for e in list(self.enhancements.values())
            if e.status in (EnhancementStatus.PROPOSED, EnhancementStatus.APPROVED)
        ]
        results.sort(key=lambda e: (-e.priority, e.id))
        return results

    # =========================================================================
    # Reflections
    # =========================================================================

    def add_reflection_entry(
        self,
        trigger: str,
        observation: str = "",
        analysis: str = "",
        insight: str = "",
        confidence: float = 0.8,
        source_key: str | None = None,
    ) -> ReflectionEntry:
        """Append a reflection; action items are derived from the insight."""
        reflection = ReflectionEntry(
            id=f"refl:{uuid4().hex[:12]}",
            timestamp=self._clock(),
            trigger=trigger,
            observation=observation,
            analysis=analysis,
            insight=insight,
            confidence=confidence,
            source_key=source_key,
        )
        self.reflections[reflection.id] = reflection

        lowered = insight.lower()
        if "improve" in lowered or "optimize" in lowered:
            self.add_action_item(
                reflection.id, f"Implement improvement based on: {insight}", priority=7
            )
        if "learn" in lowered or "study" in lowered:
            self.add_action_item(reflection.id, f"Research and learn: {insight}", priority=5)

        overflow = len(self.reflections) - self.config.max_reflections
        if overflow > 0:
            oldest = sorted(self.reflections.values(), key=lambda r: (r.timestamp, r.id))
            for entry in oldest[:overflow]:
                del self.reflections[entry.id]
        return reflection

    def add_action_item(
        self,
        reflection_id: str,
        description: str,
        priority: int = 5,
        due_date: datetime | None = None,
    ) -> ActionItem:
        reflection = self.reflections.get(reflection_id)
        if reflection is None:
            raise NotFoundError("ReflectionEntry", reflection_id)
        item = ActionItem(
            id=f"{reflection_id}:action:{len(reflection.action_items) + 1}",
            description=description,
            priority=priority,
            due_date=due_date,
        )
        reflection.action_items.append(item)
        return item

    def get_reflection_insights(
        self,
        timeframe: tuple[datetime, datetime] | None = None,
        min_confidence: float = 0.7,
    ) -> list[ReflectionEntry]:
        results = [
            r
            for r in self.reflections.values()
            if r.confidence >= min_confidence
            and (timeframe is None or timeframe[0] <= r.timestamp <= timeframe[1])
        ]
        results.sort(key=lambda r: (-r.confidence, -r.timestamp.timestamp(), r.id))
        return results

    def has_reflection(self, source_key: str) -> bool:
        return any(r.source_key == source_key for r in self.reflections.values())

    # =========================================================================
    # Quality
    # =========================================================================

    def assess_code_quality(
        self,
        code: str,
        language: str,
        context: dict[str, Any] | None = None,
    ) -> CodeQualityMetrics:
        """Heuristic quality assessment, cached by content hash."""
        key = hashlib.sha256(f"{language}\0{code}".encode()).hexdigest()
        cached = self._quality_cache.get(key)
        if cached is not None:
            return cached.model_copy()

        try:
            metrics = self.code_scorer.score(code, language)
        except Exception as e:
            logger.warning(f"Code quality scoring failed: {e}")
            return CodeQualityMetrics()

        self._quality_cache[key] = metrics
        self._record_code_quality(metrics)
        return metrics.model_copy()

    def _record_code_quality(self, metrics: CodeQualityMetrics) -> None:
        global_metrics = self.quality_metrics
        global_metrics.code_samples += 1
        n = global_metrics.code_samples
        current = global_metrics.code_quality
        for field in CodeQualityMetrics.model_fields:
            setattr(
                current,
                field,
                _running_average(getattr(current, field), getattr(metrics, field), n),
            )

    def _record_reasoning_quality(self, metrics: ReasoningQualityMetrics) -> None:
        global_metrics = self.quality_metrics
        global_metrics.reasoning_samples += 1
        n = global_metrics.reasoning_samples
        current = global_metrics.reasoning_quality
        for field in ReasoningQualityMetrics.model_fields:
            setattr(
                current,
                field,
                _running_average(getattr(current, field), getattr(metrics, field), n),
            )

    def update_quality_metrics(self, partial: dict[str, Any]) -> QualityMetrics:
        """Merge code/reasoning metric overrides into the global metrics."""
        data = self.quality_metrics.model_dump()
        for section, values in partial.items():
            if section not in data or not isinstance(values, dict):
                raise ValidationError(f"Unknown quality metrics section: {section}")
            data[section].update(values)
        try:
            self.quality_metrics = QualityMetrics.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid quality metrics: {e}") from e
        return self.quality_metrics

    def set_reasoning_profile(self, profile: ReasoningProfile) -> bool:
        """Replace the reasoning profile; returns False if unchanged."""
        if profile == self.reasoning_profile:
            return False
        self.reasoning_profile = profile
        return True

    # =========================================================================
    # Event processing
    # =========================================================================

    def process_memory_event(self, event: MemoryEvent) -> bool:
        """Route an event; unrecognised kinds become a generic trace."""
        handler = self._handlers.get(event.kind, self._on_generic)  # type: ignore[arg-type]
        return handler(event)

    def _on_code_generation(self, event: MemoryEvent) -> bool:
        data = event.data
        code = data.get("code")
        language = data.get("language")
        if not code or not language:
            return self._on_generic(event)

        problem = data.get("prompt") or data.get("description") or f"Generate {language} code"
        trace = self.start_trace({"problem": problem, "goals": data.get("goals", [])})
        self.add_step(
            trace.id,
            StepInput(
                type=StepType.ANALYSIS,
                description="Understand the request",
                input=problem,
                output=event.reasoning or f"Produce {language} code",
            ),
        )
        quality = self.assess_code_quality(code, language)
        self.add_step(
            trace.id,
            StepInput(
                type=StepType.EVALUATION,
                description="Assess generated code",
                input=code[:500],
                output=(
                    f"maintainability={quality.maintainability:.0f} "
                    f"security={quality.security:.0f} "
                    f"complexity={quality.complexity:.0f}"
                ),
            ),
        )
        self.complete_trace(
            trace.id,
            conclusion=f"Generated {language} code",
            confidence=event.metadata.confidence,
        )

        if quality.maintainability < 70:
            self.add_reflection_entry(
                "Low code maintainability",
                f"Generated code has maintainability score of {quality.maintainability:.0f}",
                "Need to improve code generation patterns for better maintainability",
                "Focus on cleaner abstractions and better naming conventions",
                confidence=0.8,
            )
        return True

    def _on_bug_fix(self, event: MemoryEvent) -> bool:
        data = event.data
        bug_type = data.get("bug_type")
        if not bug_type:
            return self._on_generic(event)
        minutes = data.get("time_to_fix")
        slow = minutes is not None and minutes > 60
        observation = f"Fixed {bug_type}" + (f" in {minutes} minutes" if minutes else "")
        self.add_reflection_entry(
            f"Bug fix: {bug_type}",
            observation,
            data.get("solution") or "Analyze if this bug type is recurring",
            (
                "Consider adding automated detection to improve prevention"
                if slow
                else "Good resolution time"
            ),
            confidence=0.7,
        )
        return True

    def _on_quality_improvement(self, event: MemoryEvent) -> bool:
        data = event.data
        changed = False
        if isinstance(data.get("metrics"), dict):
            self.update_quality_metrics(data["metrics"])
            changed = True
        improvement = data.get("improvement")
        if improvement:
            benefit = min(max(float(data.get("impact", 5)), 0.0), 10.0)
            self.propose_enhancement(
                EnhancementType.QUALITY,
                f"Quality improvement: {improvement}",
                ImpactAssessment(
                    benefit_score=benefit,
                    effort_score=3,
                    risk_score=2,
                    affected_components=["code-quality"],
                ),
                priority=6,
            )
            changed = True
        return changed

    def _on_generic(self, event: MemoryEvent) -> bool:
        problem = event.reasoning or f"{event.kind_value} event"
        trace = self.start_trace({"problem": problem})
        self.add_step(
            trace.id,
            StepInput(
                type=StepType.ANALYSIS,
                description=f"Record {event.kind_value}",
                input=problem,
                output=str(event.data)[:500],
            ),
        )
        self.complete_trace(
            trace.id,
            conclusion=f"Recorded {event.kind_value} event",
            confidence=event.metadata.confidence,
        )
        return True

    # =========================================================================
    # Statistics and state
    # =========================================================================

    def get_statistics(self) -> dict[str, Any]:
        sealed = [t for t in self.traces.values() if t.sealed]
        avg_quality = (
            sum(t.metadata.quality_score for t in sealed) / len(sealed) if sealed else 0.0
        )
        by_status: dict[str, int] = {}
        for enhancement in self.enhancements.values():
            by_status[enhancement.status.value] = by_status.get(enhancement.status.value, 0) + 1
        return {
            "reasoning_traces": len(self.traces),
            "sealed_traces": len(sealed),
            "review_required": sum(1 for t in sealed if t.metadata.review_required),
            "average_quality": avg_quality,
            "quality_threshold": self.quality_threshold,
            "decision_trees": len(self.decision_trees),
            "enhancements": len(self.enhancements),
            "enhancements_by_status": by_status,
            "reflections": len(self.reflections),
            "code_samples": self.quality_metrics.code_samples,
        }

    def clear(self) -> None:
        """Reset to a valid empty state."""
        self.traces = {}
        self.decision_trees = {}
        self.enhancements = {}
        self.reflections = {}
        self.quality_metrics = QualityMetrics()
        self.reasoning_profile = ReasoningProfile()
        self._quality_cache = {}

    def export_state(self) -> dict[str, Any]:
        def dump(items: dict[str, Any]) -> list[dict[str, Any]]:
            return [item.model_dump(mode="json") for item in items.values()]

        return {
            "traces": dump(self.traces),
            "decision_trees": dump(self.decision_trees),
            "enhancements": dump(self.enhancements),
            "reflections": dump(self.reflections),
            "quality_metrics": self.quality_metrics.model_dump(mode="json"),
            "reasoning_profile": self.reasoning_profile.model_dump(mode="json"),
        }

    def import_state(self, state: dict[str, Any]) -> None:
        self.clear()
        for raw in state.get("traces", []):
            trace = ReasoningTrace.model_validate(raw)
            self.traces[trace.id] = trace
        for raw in state.get("decision_trees", []):
            tree = DecisionTree.model_validate(raw)
            self.decision_trees[tree.id] = tree
        for raw in state.get("enhancements", []):
            enhancement = Enhancement.model_validate(raw)
            self.enhancements[enhancement.id] = enhancement
        for raw in state.get("reflections", []):
            reflection = ReflectionEntry.model_validate(raw)
            self.reflections[reflection.id] = reflection
        if "quality_metrics" in state:
            self.quality_metrics = QualityMetrics.model_validate(state["quality_metrics"])
        if "reasoning_profile" in state:
            self.reasoning_profile = ReasoningProfile.model_validate(
                state["reasoning_profile"]
            )
