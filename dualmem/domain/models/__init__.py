"""Domain models for Dualmem.

This package provides all domain models, organized by concern:
- enums: NodeKind, MemoryEventKind, QueryType, EnhancementStatus, ...
- knowledge: KnowledgeNode, ConceptEdge, ConceptCluster
- pattern: CodePattern, AntiPattern, BestPractice, CodeTemplate
- interaction: SessionRecord, CommandHistory, UsagePattern, UserPreferenceSet
- reasoning: ReasoningTrace, ReasoningStep, AlternativeReasoning
- decision: DecisionTree, DecisionNode, Evidence
- quality: CodeQualityMetrics, ReasoningQualityMetrics, QualityMetrics
- enhancement: Enhancement, ImpactAssessment, ReflectionEntry, ActionItem
- events: MemoryEvent, MemoryQuery, MemoryResponse, OperationMetrics
- coordination: SyncPoint, ConflictResolution, OptimizationRecommendation
"""

from .coordination import (
    BehaviorPattern,
    ConflictResolution,
    CoordinationMetrics,
    OptimizationRecommendation,
    SyncPoint,
    SynchronizationReport,
    SystemConflict,
)
from .decision import (
    DecisionNode,
    DecisionResult,
    DecisionTree,
    DecisionTreeMetadata,
    Evidence,
)
from .enhancement import ActionItem, Enhancement, ImpactAssessment, ReflectionEntry
from .enums import (
    CacheStrategy,
    Complexity,
    ConflictStrategy,
    ConflictType,
    CoordinatorState,
    DecisionNodeKind,
    DetectionRuleType,
    EdgeKind,
    EnhancementStatus,
    EnhancementType,
    EvidenceType,
    Level,
    MemoryEventKind,
    NodeKind,
    Priority,
    QueryType,
    ResponseSource,
    Severity,
    StepType,
    SystemHealth,
    TransferType,
)
from .events import (
    EventMetadata,
    MemoryEvent,
    MemoryQuery,
    MemoryResponse,
    OperationMetrics,
)
from .interaction import (
    CommandHistory,
    SessionRecord,
    UsagePattern,
    UserPreferenceSet,
)
from .knowledge import (
    ConceptCluster,
    ConceptEdge,
    KnowledgeNode,
    NodeMetadata,
    RelatedConcept,
)
from .pattern import (
    AntiPattern,
    AntiPatternMatch,
    BestPractice,
    CodeExample,
    CodePattern,
    CodeTemplate,
    DetectionRule,
    PerformanceProfile,
)
from .quality import CodeQualityMetrics, QualityMetrics, ReasoningQualityMetrics
from .reasoning import (
    AlternativeReasoning,
    ReasoningContext,
    ReasoningMetadata,
    ReasoningProfile,
    ReasoningStep,
    ReasoningTrace,
    StepInput,
)

__all__ = [
    # Enums
    "CacheStrategy",
    "Complexity",
    "ConflictStrategy",
    "ConflictType",
    "CoordinatorState",
    "DecisionNodeKind",
    "DetectionRuleType",
    "EdgeKind",
    "EnhancementStatus",
    "EnhancementType",
    "EvidenceType",
    "Level",
    "MemoryEventKind",
    "NodeKind",
    "Priority",
    "QueryType",
    "ResponseSource",
    "Severity",
    "StepType",
    "SystemHealth",
    "TransferType",
    # Knowledge
    "KnowledgeNode",
    "NodeMetadata",
    "ConceptEdge",
    "ConceptCluster",
    "RelatedConcept",
    # Patterns
    "CodePattern",
    "CodeExample",
    "PerformanceProfile",
    "AntiPattern",
    "AntiPatternMatch",
    "DetectionRule",
    "BestPractice",
    "CodeTemplate",
    # Interaction
    "SessionRecord",
    "CommandHistory",
    "UsagePattern",
    "UserPreferenceSet",
    # Reasoning
    "ReasoningTrace",
    "ReasoningContext",
    "ReasoningStep",
    "ReasoningMetadata",
    "ReasoningProfile",
    "StepInput",
    "AlternativeReasoning",
    # Decisions
    "DecisionTree",
    "DecisionTreeMetadata",
    "DecisionNode",
    "DecisionResult",
    "Evidence",
    # Quality
    "CodeQualityMetrics",
    "ReasoningQualityMetrics",
    "QualityMetrics",
    # Enhancements
    "Enhancement",
    "ImpactAssessment",
    "ReflectionEntry",
    "ActionItem",
    # Events
    "MemoryEvent",
    "EventMetadata",
    "MemoryQuery",
    "MemoryResponse",
    "OperationMetrics",
    # Coordination
    "SyncPoint",
    "SynchronizationReport",
    "SystemConflict",
    "ConflictResolution",
    "OptimizationRecommendation",
    "BehaviorPattern",
    "CoordinationMetrics",
]
