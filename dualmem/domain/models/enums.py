"""Enumeration types for Dualmem domain models."""

from enum import Enum


class NodeKind(str, Enum):
    """Kind of knowledge node held by System 1."""

    FUNCTION = "function"
    CLASS = "class"
    MODULE = "module"
    CONCEPT = "concept"
    PATTERN = "pattern"


class EdgeKind(str, Enum):
    """Relationship between two knowledge nodes."""

    DEPENDS_ON = "depends_on"
    IMPLEMENTS = "implements"
    USES = "uses"
    SIMILAR_TO = "similar_to"
    EXTENDS = "extends"


class Level(str, Enum):
    """Coarse low/medium/high rating."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Complexity(str, Enum):
    """Complexity of a reasoning problem."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    VERY_COMPLEX = "very_complex"


class MemoryEventKind(str, Enum):
    """Kinds of events the engine knows how to route.

    Events with any other kind are accepted and treated as no-ops by
    handlers that do not recognise them.
    """

    CODE_GENERATION = "code_generation"
    BUG_FIX = "bug_fix"
    QUALITY_IMPROVEMENT = "quality_improvement"
    TEAM_INTERACTION = "team_interaction"
    LEARNING_UPDATE = "learning_update"
    PATTERN_RECOGNITION = "pattern_recognition"
    MODE_CHANGE = "mode_change"


class Priority(str, Enum):
    """Priority / urgency level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class QueryType(str, Enum):
    """Type of memory query."""

    KNOWLEDGE = "knowledge"
    PATTERN = "pattern"
    REASONING = "reasoning"
    QUALITY = "quality"
    PREFERENCE = "preference"


class ResponseSource(str, Enum):
    """Which store(s) answered a query."""

    SYSTEM1 = "system1"
    SYSTEM2 = "system2"
    BOTH = "both"


class StepType(str, Enum):
    """Type of a reasoning step."""

    ANALYSIS = "analysis"
    INFERENCE = "inference"
    EVALUATION = "evaluation"
    SYNTHESIS = "synthesis"


class DecisionNodeKind(str, Enum):
    """Kind of decision-tree node."""

    CONDITION = "condition"
    ACTION = "action"
    OUTCOME = "outcome"


class EvidenceType(str, Enum):
    """Source of a piece of evidence."""

    EMPIRICAL = "empirical"
    THEORETICAL = "theoretical"
    HEURISTIC = "heuristic"
    USER_FEEDBACK = "user_feedback"


class EnhancementType(str, Enum):
    """Category of a proposed enhancement."""

    PERFORMANCE = "performance"
    QUALITY = "quality"
    USABILITY = "usability"
    RELIABILITY = "reliability"
    SECURITY = "security"


class EnhancementStatus(str, Enum):
    """Lifecycle state of an enhancement."""

    PROPOSED = "proposed"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class DetectionRuleType(str, Enum):
    """Kind of anti-pattern detection rule."""

    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    PERFORMANCE = "performance"
    SECURITY = "security"


class Severity(str, Enum):
    """Severity of an anti-pattern."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TransferType(str, Enum):
    """Cross-layer transfer performed during synchronization."""

    KNOWLEDGE_TO_REASONING = "knowledge_to_reasoning"
    QUALITY_TO_PATTERNS = "quality_to_patterns"
    PREFERENCES = "preferences"
    LEARNING_DATA = "learning_data"


class ConflictType(str, Enum):
    """Class of disagreement between the two stores."""

    DATA_INCONSISTENCY = "data_inconsistency"
    PREFERENCE_MISMATCH = "preference_mismatch"
    QUALITY_THRESHOLD = "quality_threshold"
    PERFORMANCE_TRADEOFF = "performance_tradeoff"


class ConflictStrategy(str, Enum):
    """How conflicts between the two stores are resolved."""

    SYSTEM1_PRIORITY = "system1_priority"
    SYSTEM2_PRIORITY = "system2_priority"
    BALANCED = "balanced"


class CacheStrategy(str, Enum):
    """Response cache eviction strategy."""

    LRU = "lru"
    LFU = "lfu"
    ADAPTIVE = "adaptive"


class CoordinatorState(str, Enum):
    """Phase of a coordinator maintenance cycle."""

    IDLE = "idle"
    SYNCING = "syncing"
    OPTIMIZING = "optimizing"
    CONFLICT_CHECK = "conflict_check"


class SystemHealth(str, Enum):
    """Overall health rating reported by the coordinator."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
