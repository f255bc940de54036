"""Session, command history and user preference models (System 1)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionRecord(BaseModel):
    """One working session of a user."""

    id: str
    user_id: str = "default"
    started_at: datetime
    ended_at: datetime | None = None
    commands: list[str] = Field(default_factory=list)
    success: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class CommandHistory(BaseModel):
    """Rolling statistics for a single command."""

    command: str
    count: int = 0
    success_count: int = 0
    total_execution_ms: float = 0.0
    last_used: datetime

    @property
    def success_rate(self) -> float:
        return self.success_count / self.count if self.count else 0.0

    @property
    def avg_execution_ms(self) -> float:
        return self.total_execution_ms / self.count if self.count else 0.0


class UsagePattern(BaseModel):
    """A recurring command sequence."""

    id: str
    sequence: list[str]
    frequency: int = 0
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    last_seen: datetime


class DevelopmentStyle(BaseModel):
    naming_convention: str = "snake_case"
    indentation: str = "spaces"
    max_line_length: int = 100
    comment_density: str = "moderate"
    testing_approach: str = "unit"


class CommunicationPreferences(BaseModel):
    verbosity: str = "balanced"
    explanation_depth: str = "moderate"
    language: str = "en"


class ToolPreferences(BaseModel):
    editor: str | None = None
    preferred_languages: list[str] = Field(default_factory=list)
    preferred_frameworks: list[str] = Field(default_factory=list)


class LearningStyle(BaseModel):
    pace: str = "moderate"
    prefers_examples: bool = True
    prefers_reasoning: bool = False


class QualityStandards(BaseModel):
    min_quality: float = Field(default=0.7, ge=0.0, le=1.0)
    require_tests: bool = False
    focus: list[str] = Field(
        default_factory=list, description="Quality dimensions the user cares about"
    )


class UserPreferenceSet(BaseModel):
    """The single mutable preference record, updated by field-level merge."""

    user_id: str = "default"
    development_style: DevelopmentStyle = Field(default_factory=DevelopmentStyle)
    communication: CommunicationPreferences = Field(
        default_factory=CommunicationPreferences
    )
    tools: ToolPreferences = Field(default_factory=ToolPreferences)
    learning_style: LearningStyle = Field(default_factory=LearningStyle)
    quality_standards: QualityStandards = Field(default_factory=QualityStandards)
    suggestion_weights: dict[str, float] = Field(
        default_factory=dict, description="Per suggestion-type weight in [0, 1]"
    )
    adaptations: dict[str, float] = Field(
        default_factory=dict, description="Confidence of each learned preference path"
    )
    updated_at: datetime | None = None
