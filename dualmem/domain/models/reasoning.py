"""Reasoning trace models (System 2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import Complexity, StepType


class ReasoningContext(BaseModel):
    """The problem a reasoning trace works on."""

    problem: str = Field(..., description="Problem statement")
    goals: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    available_resources: list[str] = Field(default_factory=list)


class StepInput(BaseModel):
    """Caller-supplied part of a reasoning step.

    ``confidence``, ``duration_ms`` and ``dependencies`` are derived by
    the store and cannot be supplied.
    """

    type: StepType = StepType.ANALYSIS
    description: str = ""
    input: str = ""
    output: str = ""


class ReasoningStep(BaseModel):
    """One recorded step of a trace."""

    id: str
    type: StepType
    description: str = ""
    input: str = ""
    output: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    duration_ms: float = Field(default=0.0, ge=0.0)
    dependencies: list[str] = Field(
        default_factory=list, description="IDs of earlier steps this one builds on"
    )


class AlternativeReasoning(BaseModel):
    """An alternative line of reasoning considered before sealing."""

    id: str = ""
    description: str
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    rejected: bool = False
    rejection_reason: str | None = None


class ReasoningMetadata(BaseModel):
    complexity: Complexity = Complexity.MODERATE
    domain: str = "general"
    techniques: list[str] = Field(default_factory=list)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    review_required: bool = False


class ReasoningTrace(BaseModel):
    """A steppable chain of reasoning.

    A trace is open until :meth:`System2Store.complete_trace` seals it;
    sealed traces reject further steps and alternatives.
    """

    id: str
    timestamp: datetime
    context: ReasoningContext
    steps: list[ReasoningStep] = Field(default_factory=list)
    conclusion: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    alternatives: list[AlternativeReasoning] = Field(default_factory=list)
    metadata: ReasoningMetadata = Field(default_factory=ReasoningMetadata)
    sealed: bool = False
    sealed_at: datetime | None = None
    last_step_at: datetime | None = None
    source_key: str | None = Field(
        None, description="Content hash of the cross-layer transfer that created it"
    )


class ReasoningProfile(BaseModel):
    """Reasoning preferences pushed from System 1 during synchronization."""

    explanation_depth: str = "moderate"
    prefers_reasoning: bool = False
    min_steps: int = Field(default=2, ge=1)
