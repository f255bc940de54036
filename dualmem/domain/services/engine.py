"""Dual Memory Engine - the single entry point collaborators use.

Responsibilities:
- Route queries to System 1, System 2 or both and blend the results
- Cache responses for a short TTL
- Queue events and drain them into the stores in the background
- Track operation metrics for the coordinator
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ...config import SECTION_NAMES, Config, check_field_bounds, section_field_names
from ...worker import FairLock, PeriodicTask, TaskScheduler
from ..exceptions import ValidationError
from ..models import (
    CacheStrategy,
    CodeExample,
    EnhancementType,
    ImpactAssessment,
    MemoryEvent,
    MemoryEventKind,
    MemoryQuery,
    MemoryResponse,
    OperationMetrics,
    Priority,
    QueryType,
    ResponseSource,
    UserPreferenceSet,
)
from .system1 import System1Store
from .system2 import System2Store

logger = logging.getLogger(__name__)

URGENCY_WEIGHTS = {
    Priority.CRITICAL: 1.0,
    Priority.HIGH: 0.8,
    Priority.MEDIUM: 0.5,
    Priority.LOW: 0.2,
}

# (System 1 preference, System 2 preference) per query type
TYPE_PREFERENCES = {
    QueryType.KNOWLEDGE: (0.8, 0.3),
    QueryType.PATTERN: (0.9, 0.2),
    QueryType.PREFERENCE: (0.9, 0.1),
    QueryType.REASONING: (0.2, 0.9),
    QueryType.QUALITY: (0.3, 0.8),
}

TYPE_COMPLEXITY = {
    QueryType.REASONING: 0.4,
    QueryType.QUALITY: 0.3,
    QueryType.PATTERN: 0.2,
    QueryType.KNOWLEDGE: 0.1,
    QueryType.PREFERENCE: 0.0,
}

# (to System 1, to System 2); unknown kinds go to System 1
EVENT_ROUTES = {
    MemoryEventKind.CODE_GENERATION: (True, False),
    MemoryEventKind.PATTERN_RECOGNITION: (True, False),
    MemoryEventKind.BUG_FIX: (False, True),
    MemoryEventKind.QUALITY_IMPROVEMENT: (False, True),
    MemoryEventKind.LEARNING_UPDATE: (True, True),
    MemoryEventKind.MODE_CHANGE: (True, True),
}

LATENCY_WINDOW = 100
EMPTY_CONFIDENCE = 0.1


@dataclass
class StrategyDecision:
    """Outcome of strategy selection for one query."""

    system1_score: float
    system2_score: float
    source: ResponseSource
    complexity: float


@dataclass
class CacheEntry:
    response: MemoryResponse
    query_type: QueryType
    created_at: datetime
    last_access: datetime
    hits: int = 0


@dataclass
class _Counters:
    total_operations: int = 0
    system1_operations: int = 0
    system2_operations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    slow_single_system: int = 0
    events_processed: int = 0
    latencies: deque[float] = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))


def _item_confidence(item: Any) -> float:
    for attr in ("confidence", "effectiveness"):
        value = getattr(item, attr, None)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return 0.5


def _mean_confidence(items: list[Any]) -> float:
    if not items:
        return EMPTY_CONFIDENCE
    return sum(_item_confidence(i) for i in items) / len(items)


def _coerce(current: Any, value: Any) -> Any:
    """Convert ``value`` to the type of an existing config value."""
    if isinstance(current, Enum):
        return type(current)(value)
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise TypeError(f"expected bool, got {type(value).__name__}")
        return value
    if isinstance(current, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected number, got {type(value).__name__}")
        if isinstance(current, int) and not float(value).is_integer():
            raise TypeError(f"expected an integer, got {value}")
        return type(current)(value)
    return value


class DualMemoryEngine:
    """Query router and event ingestion facade over both stores.

    Queries run without the structural lock; they may observe data up to
    one maintenance interval stale. Event processing, maintenance and
    ``clear_memory`` hold the shared :class:`FairLock`.
    """

    def __init__(
        self,
        config: Config,
        system1: System1Store | None = None,
        system2: System2Store | None = None,
        lock: FairLock | None = None,
        clock: Callable[[], datetime] | None = None,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Full configuration; sections are shared with the stores.
            system1: Fast store (built from config if omitted).
            system2: Deliberate store (built from config if omitted).
            lock: Shared structural lock (also used by the coordinator).
            clock: Time source (default: UTC now).
            scheduler: Where background tasks are registered.
        """
        self.config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.system1 = system1 or System1Store(config.system1, clock=self._clock)
        self.system2 = system2 or System2Store(config.system2, clock=self._clock)
        self.lock = lock or FairLock()
        self.scheduler = scheduler or TaskScheduler()

        self._cache: dict[str, CacheEntry] = {}
        self._cache_lock = threading.Lock()
        self._queue: deque[MemoryEvent] = deque()
        self._queue_lock = threading.Lock()
        self._counters = _Counters()
        self._metrics_lock = threading.Lock()
        self._epoch = 0
        self._listeners: list[Callable[[MemoryEvent], None]] = []
        self._clear_hooks: list[Callable[[], None]] = []
        self._tasks: list[PeriodicTask] = []

    @property
    def epoch(self) -> int:
        """Incremented by every ``clear_memory``; background cycles compare it."""
        return self._epoch

    def add_listener(self, listener: Callable[[MemoryEvent], None]) -> None:
        """Observe every drained event."""
        self._listeners.append(listener)

    def add_clear_hook(self, hook: Callable[[], None]) -> None:
        self._clear_hooks.append(hook)

    # =========================================================================
    # Strategy selection
    # =========================================================================

    def estimate_complexity(self, query: MemoryQuery) -> float:
        complexity = 0.3
        if len(query.query) > 100:
            complexity += 0.2
        elif len(query.query) > 50:
            complexity += 0.1
        if len(query.context) > 3:
            complexity += 0.1
        complexity += TYPE_COMPLEXITY[query.type]
        return min(complexity, 1.0)

    def _cache_warm(self, query_type: QueryType) -> bool:
        with self._cache_lock:
            return any(e.query_type == query_type for e in self._cache.values())

    def select_strategy(self, query: MemoryQuery) -> StrategyDecision:
        """Score both stores for a query and pick one or both.

        A single store answers when its score beats the other by at least
        ``performance.strategy_margin``. A cache already holding answers
        of the same query type favours System 1.
        """
        urgency = URGENCY_WEIGHTS[query.urgency]
        complexity = self.estimate_complexity(query)
        pref1, pref2 = TYPE_PREFERENCES[query.type]
        cache_status = 0.8 if self._cache_warm(query.type) else 0.2

        s1 = urgency * 0.4 + (1 - complexity) * 0.3 + pref1 * 0.2 + cache_status * 0.1
        s2 = complexity * 0.4 + (1 - urgency) * 0.2 + pref2 * 0.3 + 0.1

        margin = self.config.performance.strategy_margin
        if s1 - s2 >= margin:
            source = ResponseSource.SYSTEM1
        elif s2 - s1 >= margin:
            source = ResponseSource.SYSTEM2
        else:
            source = ResponseSource.BOTH
        return StrategyDecision(s1, s2, source, complexity)

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def cache_key(query: MemoryQuery) -> str:
        text = " ".join(query.query.lower().split())
        payload = json.dumps(
            {
                "context": query.context,
                "embedding": query.embedding,
                "limit": query.limit,
            },
            sort_keys=True,
            default=str,
        )
        raw = f"{query.type.value}\0{query.urgency.value}\0{text}\0{payload}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def _cache_lookup(self, key: str) -> MemoryResponse | None:
        now = self._clock()
        ttl = self.config.performance.cache_ttl
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if (now - entry.created_at).total_seconds() > ttl:
                del self._cache[key]
                return None
            entry.hits += 1
            entry.last_access = now
            return entry.response.model_copy(deep=True)

    def _cache_store(self, key: str, query_type: QueryType, response: MemoryResponse) -> None:
        now = self._clock()
        with self._cache_lock:
            self._cache[key] = CacheEntry(
                response=response.model_copy(deep=True),
                query_type=query_type,
                created_at=now,
                last_access=now,
            )
            self._evict_cache_entries(now)

    def _evict_cache_entries(self, now: datetime) -> None:
        limit = max(self.config.performance.max_cache_entries, 0)
        excess = len(self._cache) - limit
        if excess <= 0:
            return
        strategy = self.config.performance.cache_strategy

        def rank(item: tuple[str, CacheEntry]) -> tuple[float, str]:
            key, entry = item
            if strategy == CacheStrategy.LFU:
                return (entry.hits, key)
            if strategy == CacheStrategy.ADAPTIVE:
                age = max((now - entry.created_at).total_seconds(), 1.0)
                return (entry.hits / age, key)
            return (entry.last_access.timestamp(), key)

        for key, _ in sorted(self._cache.items(), key=rank)[:excess]:
            del self._cache[key]

    def cleanup_cache(self) -> int:
        """Drop expired cache entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        ttl = self.config.performance.cache_ttl
        with self._cache_lock:
            expired = [
                key
                for key, entry in self._cache.items()
                if (now - entry.created_at).total_seconds() > ttl
            ]
            for key in expired:
                del self._cache[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired cache entries")
        return len(expired)

    def _query_system1(self, query: MemoryQuery) -> list[Any]:
        s1 = self.system1
        ctx = query.context
        if query.type in (QueryType.KNOWLEDGE, QueryType.REASONING):
            return s1.search_nodes(
                query.query,
                query_embedding=query.embedding,
                limit=query.limit,
                kind=ctx.get("kind"),
                language=ctx.get("language"),
            )
        if query.type == QueryType.PATTERN:
            patterns = s1.find_code_patterns(
                language=ctx.get("language"),
                framework=ctx.get("framework"),
                use_case=ctx.get("use_case"),
                limit=query.limit,
                embedding=query.embedding,
            )
            return [p.model_copy(deep=True) for p in patterns]
        if query.type == QueryType.QUALITY:
            practices = s1.patterns.find_best_practices(
                language=ctx.get("language"), domain=ctx.get("domain"), limit=query.limit
            )
            results: list[Any] = [bp.model_copy(deep=True) for bp in practices]
            if ctx.get("code"):
                results.extend(s1.detect_anti_patterns(ctx["code"], ctx.get("language")))
            return results[: query.limit]
        return [s1.preferences.model_copy(deep=True)]

    def _query_system2(self, query: MemoryQuery) -> list[Any]:
        s2 = self.system2
        ctx = query.context
        if query.type == QueryType.QUALITY:
            results: list[Any] = []
            if ctx.get("code") and ctx.get("language"):
                results.append(s2.assess_code_quality(ctx["code"], ctx["language"], ctx))
            results.append(s2.quality_metrics.model_copy(deep=True))
            return results[: query.limit]
        if query.type == QueryType.PREFERENCE:
            return [s2.reasoning_profile.model_copy(deep=True)]
        if query.type == QueryType.REASONING and not query.query.strip():
            return s2.search_traces(
                domain=ctx.get("domain"),
                complexity=ctx.get("complexity"),
                min_quality=ctx.get("min_quality"),
                limit=query.limit,
            )
        return s2.search_traces_by_text(query.query, limit=query.limit)

    def _suggestions(self, limit: int = 3) -> list[str]:
        return [e.description for e in self.system2.improvement_suggestions[:limit]]

    def _execute(self, query: MemoryQuery, decision: StrategyDecision) -> MemoryResponse:
        perf = self.config.performance
        if decision.source == ResponseSource.SYSTEM1:
            data = self._query_system1(query)
            return MemoryResponse(
                data=data, source=decision.source, confidence=_mean_confidence(data)
            )
        if decision.source == ResponseSource.SYSTEM2:
            data = self._query_system2(query)
            return MemoryResponse(
                data=data,
                source=decision.source,
                confidence=_mean_confidence(data),
                suggestions=self._suggestions(),
            )

        fast = self._query_system1(query)
        deliberate = self._query_system2(query)
        w1, w2 = perf.system1_blend_weight, perf.system2_blend_weight
        total = (w1 + w2) or 1.0
        confidence = (w1 * _mean_confidence(fast) + w2 * _mean_confidence(deliberate)) / total
        return MemoryResponse(
            data=fast + deliberate,
            source=ResponseSource.BOTH,
            confidence=min(max(confidence, 0.0), 1.0),
            suggestions=self._suggestions(),
        )

    def query(self, query: MemoryQuery | dict[str, Any]) -> MemoryResponse:
        """Answer a query from one or both stores.

        Failures never propagate: they produce an empty response with
        ``error`` set, so callers can proceed without memory context.

        Raises:
            ValidationError: If ``query`` is a malformed dict.
        """
        if isinstance(query, dict):
            try:
                query = MemoryQuery.model_validate(query)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid memory query: {e}") from e

        start = time.perf_counter()
        key = self.cache_key(query)
        cached = self._cache_lookup(key)
        if cached is not None:
            latency = (time.perf_counter() - start) * 1000
            self._record_query(latency, hit=True)
            return cached.model_copy(update={"cached": True, "latency_ms": latency})

        decision = self.select_strategy(query)
        try:
            response = self._execute(query, decision)
        except Exception as e:
            logger.warning(f"Query failed ({query.type.value}): {e}")
            latency = (time.perf_counter() - start) * 1000
            self._record_query(latency, hit=False, source=decision.source, failed=True)
            return MemoryResponse(
                data=[],
                source=decision.source,
                confidence=0.0,
                latency_ms=latency,
                error=str(e),
            )

        response.latency_ms = (time.perf_counter() - start) * 1000
        self._record_query(response.latency_ms, hit=False, source=decision.source)
        self._cache_store(key, query.type, response)
        return response

    def recall(
        self,
        query: str,
        type: QueryType | str = QueryType.KNOWLEDGE,
        limit: int = 10,
        context: dict[str, Any] | None = None,
    ) -> list[Any]:
        """Raw hits for ``query`` without response metadata."""
        return self.query(
            {"type": type, "query": query, "limit": limit, "context": context or {}}
        ).data

    def find_knowledge(
        self,
        query: str,
        limit: int = 10,
        language: str | None = None,
        embedding: list[float] | None = None,
        urgency: Priority = Priority.MEDIUM,
    ) -> MemoryResponse:
        context = {"language": language} if language else {}
        return self.query(
            MemoryQuery(
                type=QueryType.KNOWLEDGE,
                query=query,
                context=context,
                embedding=embedding,
                urgency=urgency,
                limit=limit,
            )
        )

    def find_patterns(
        self,
        language: str | None = None,
        use_case: str | None = None,
        framework: str | None = None,
        limit: int = 10,
    ) -> MemoryResponse:
        context = {
            k: v
            for k, v in {
                "language": language,
                "use_case": use_case,
                "framework": framework,
            }.items()
            if v is not None
        }
        return self.query(MemoryQuery(type=QueryType.PATTERN, context=context, limit=limit))

    def get_reasoning(
        self, problem: str = "", domain: str | None = None, limit: int = 10
    ) -> MemoryResponse:
        context = {"domain": domain} if domain else {}
        return self.query(
            MemoryQuery(type=QueryType.REASONING, query=problem, context=context, limit=limit)
        )

    def get_quality_insights(
        self, code: str | None = None, language: str | None = None
    ) -> MemoryResponse:
        context = {k: v for k, v in {"code": code, "language": language}.items() if v}
        return self.query(MemoryQuery(type=QueryType.QUALITY, context=context))

    def get_user_preferences(self) -> UserPreferenceSet:
        return self.system1.preferences.model_copy(deep=True)

    # =========================================================================
    # Ingestion
    # =========================================================================

    def store(self, event: MemoryEvent | dict[str, Any]) -> MemoryEvent:
        """Validate and enqueue an event; never waits on processing.

        Raises:
            ValidationError: If the event is malformed.
        """
        if isinstance(event, dict):
            raw = {"id": f"evt:{uuid4().hex[:12]}", "timestamp": self._clock(), **event}
            try:
                event = MemoryEvent.model_validate(raw)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid memory event: {e}") from e
        with self._queue_lock:
            self._queue.append(event)
        with self._metrics_lock:
            self._counters.total_operations += 1
        return event

    def learn(
        self,
        input: str,
        output: str,
        context: dict[str, Any] | None = None,
        success: bool = True,
    ) -> MemoryEvent:
        """Record a learning outcome.

        Successful outcomes with a known language feed System 1 pattern
        extraction immediately; the full event is queued as usual.
        """
        context = context or {}
        event = self.store(
            {
                "kind": MemoryEventKind.LEARNING_UPDATE,
                "data": {
                    "input": input,
                    "output": output,
                    "context": context,
                    "success": success,
                },
                "metadata": {"source": "learn", "tags": ["learn"]},
            }
        )
        language = context.get("language")
        if success and language and output.strip():
            with self.lock:
                self._learn_pattern(event, input, output, context)
        return event

    def _learn_pattern(
        self, event: MemoryEvent, input: str, output: str, context: dict[str, Any]
    ) -> None:
        extracted = self.system1.patterns.extract_patterns(output)
        if extracted:
            name, use_case = extracted[0].name, extracted[0].use_case
        else:
            name = f"learned:{hashlib.sha256(output.encode()).hexdigest()[:8]}"
            use_case = "learned"
        self.system1.add_code_pattern(
            name,
            context["language"],
            template=output,
            framework=context.get("framework"),
            use_case=context.get("use_case", use_case),
            description=input[:200],
            embedding=context.get("embedding"),
            examples=[
                CodeExample(
                    id=f"{event.id}:0",
                    code=output,
                    description=input[:200],
                    source_event_id=event.id,
                )
            ],
        )

    @property
    def queue_size(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    @property
    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def _process_event(self, event: MemoryEvent) -> None:
        to_s1, to_s2 = EVENT_ROUTES.get(event.kind, (True, False))  # type: ignore[arg-type]
        if to_s1:
            self.system1.process_memory_event(event)
        if to_s2:
            self.system2.process_memory_event(event)

        if event.kind == MemoryEventKind.LEARNING_UPDATE and event.data.get("success") is False:
            language = (event.data.get("context") or {}).get("language") or "general"
            description = f"Improve learning outcomes for {language} tasks"
            if self.system2.find_open_enhancement(description) is None:
                self.system2.propose_enhancement(
                    EnhancementType.USABILITY,
                    description,
                    ImpactAssessment(
                        benefit_score=6,
                        effort_score=4,
                        risk_score=2,
                        affected_components=["learning"],
                    ),
                    priority=5,
                    source="engine",
                )

    def drain_events(self, max_batch: int | None = None) -> int:
        """Process up to one batch of queued events.

        Each event is processed under the structural lock; failures are
        logged and counted and do not stop the batch.

        Returns:
            Number of events taken off the queue.
        """
        batch_size = max_batch if max_batch is not None else self.config.performance.batch_size
        epoch = self._epoch
        taken = 0
        while taken < batch_size:
            with self._queue_lock:
                if not self._queue:
                    break
                event = self._queue.popleft()
            taken += 1
            with self.lock:
                if epoch != self._epoch:
                    logger.info("Memory cleared during drain; dropping batch")
                    break
                try:
                    self._process_event(event)
                except Exception as e:
                    logger.warning(f"Failed to process event {event.id} ({event.kind_value}): {e}")
                    with self._metrics_lock:
                        self._counters.errors += 1
                    continue
                with self._metrics_lock:
                    self._counters.events_processed += 1

            for listener in self._listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.warning(f"Event listener failed for {event.id}: {e}")
        return taken

    def flush(self) -> int:
        """Drain the queue completely."""
        total = 0
        while True:
            drained = self.drain_events()
            total += drained
            if drained == 0:
                return total

    # =========================================================================
    # Metrics and statistics
    # =========================================================================

    def _record_query(
        self,
        latency_ms: float,
        hit: bool,
        source: ResponseSource | None = None,
        failed: bool = False,
    ) -> None:
        with self._metrics_lock:
            c = self._counters
            c.total_operations += 1
            c.latencies.append(latency_ms)
            if hit:
                c.cache_hits += 1
            else:
                c.cache_misses += 1
            if source in (ResponseSource.SYSTEM1, ResponseSource.BOTH):
                c.system1_operations += 1
            if source in (ResponseSource.SYSTEM2, ResponseSource.BOTH):
                c.system2_operations += 1
            if (
                not hit
                and not failed
                and source in (ResponseSource.SYSTEM1, ResponseSource.SYSTEM2)
                and latency_ms > self.config.performance.single_system_latency_ms
            ):
                c.slow_single_system += 1
            if failed:
                c.errors += 1

    def get_metrics(self) -> OperationMetrics:
        with self._metrics_lock:
            c = self._counters
            lookups = c.cache_hits + c.cache_misses
            metrics = OperationMetrics(
                total_operations=c.total_operations,
                system1_operations=c.system1_operations,
                system2_operations=c.system2_operations,
                average_latency_ms=(
                    sum(c.latencies) / len(c.latencies) if c.latencies else 0.0
                ),
                cache_hits=c.cache_hits,
                cache_misses=c.cache_misses,
                cache_hit_rate=c.cache_hits / lookups if lookups else 0.0,
                errors=c.errors,
                error_rate=c.errors / c.total_operations if c.total_operations else 0.0,
                slow_single_system_operations=c.slow_single_system,
                events_processed=c.events_processed,
            )
        metrics.queue_size = self.queue_size
        metrics.cache_size = self.cache_size
        return metrics

    def get_statistics(self) -> dict[str, Any]:
        return {
            "system1": self.system1.get_statistics(),
            "system2": self.system2.get_statistics(),
            "performance": self.get_metrics().model_dump(),
        }

    # =========================================================================
    # Configuration, maintenance and lifecycle
    # =========================================================================

    def update_config(self, updates: dict[str, dict[str, Any]]) -> None:
        """Hot-reload config values in place.

        All values are validated before any is applied.

        Raises:
            ValidationError: On an unknown section or field, or a bad value.
        """
        staged: list[tuple[Any, str, Any]] = []
        for section_name, values in updates.items():
            section = self.config.section(section_name)
            if section is None or not isinstance(values, dict):
                raise ValidationError(
                    f"Unknown config section: {section_name} (expected one of {SECTION_NAMES})"
                )
            allowed = section_field_names(section)
            for name, value in values.items():
                if name not in allowed:
                    raise ValidationError(f"Unknown config field: {section_name}.{name}")
                try:
                    coerced = _coerce(getattr(section, name), value)
                    check_field_bounds(name, coerced)
                    staged.append((section, name, coerced))
                except (TypeError, ValueError) as e:
                    raise ValidationError(
                        f"Invalid value for {section_name}.{name}: {e}"
                    ) from e

        for section, name, value in staged:
            setattr(section, name, value)
        logger.info(f"Configuration updated: {sorted(updates)}")

    def run_maintenance(self) -> dict[str, int]:
        """Decay, compress and evict System 1 under the structural lock."""
        with self.lock:
            decayed = self.system1.apply_decay()
            compressed = self.system1.compress_memory()
            evicted = self.system1.cleanup_least_used_nodes()
        logger.info(
            f"Maintenance: decayed={decayed} evicted={evicted} "
            f"merged={compressed.get('clusters_merged', 0)}"
        )
        return {"decayed": decayed, "evicted": evicted, **compressed}

    def clear_memory(self) -> None:
        """Drop caches, the event queue and all store contents.

        In-flight background cycles notice the epoch change and stop.
        """
        with self.lock:
            self._epoch += 1
            with self._queue_lock:
                self._queue.clear()
            with self._cache_lock:
                self._cache.clear()
            self.system1.clear()
            self.system2.clear()
            with self._metrics_lock:
                self._counters = _Counters()
            for hook in self._clear_hooks:
                hook()
        logger.info("Memory cleared")

    def start(self) -> None:
        """Register and start the drain, cache cleanup and maintenance tasks."""
        if not self._tasks:
            perf = self.config.performance
            self._tasks = [
                self.scheduler.add("event-drain", self.drain_events, lambda: perf.drain_interval),
                self.scheduler.add(
                    "cache-cleanup", self.cleanup_cache, lambda: perf.cache_cleanup_interval
                ),
                self.scheduler.add(
                    "maintenance", self.run_maintenance, lambda: perf.maintenance_interval
                ),
            ]
        for task in self._tasks:
            task.start()

    def stop(self) -> None:
        """Stop background tasks and process whatever is still queued."""
        for task in self._tasks:
            task.stop()
        self.flush()

    def export_state(self) -> dict[str, Any]:
        with self.lock:
            return {
                "version": 1,
                "system1": self.system1.export_state(),
                "system2": self.system2.export_state(),
            }

    def import_state(self, state: dict[str, Any]) -> None:
        with self.lock:
            self.system1.import_state(state.get("system1", {}))
            self.system2.import_state(state.get("system2", {}))
            with self._cache_lock:
                self._cache.clear()
