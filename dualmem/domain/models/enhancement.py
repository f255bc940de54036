"""Enhancement and reflection models (System 2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import EnhancementStatus, EnhancementType


class ImpactAssessment(BaseModel):
    benefit_score: float = Field(..., ge=0.0, le=10.0)
    effort_score: float = Field(..., ge=0.0, le=10.0)
    risk_score: float = Field(..., ge=0.0, le=10.0)
    affected_components: list[str] = Field(default_factory=list)


class Enhancement(BaseModel):
    """A proposed change with an approval lifecycle."""

    id: str
    type: EnhancementType
    description: str
    impact: ImpactAssessment
    priority: float = Field(default=5.0, ge=1.0, le=10.0)
    status: EnhancementStatus = EnhancementStatus.PROPOSED
    created_at: datetime
    updated_at: datetime
    source: str = Field(default="system2", description="Who proposed it")


class ActionItem(BaseModel):
    id: str
    description: str
    priority: int = Field(default=5, ge=1, le=10)
    status: str = "open"
    due_date: datetime | None = None


class ReflectionEntry(BaseModel):
    """An append-only reflection on something that happened."""

    id: str
    timestamp: datetime
    trigger: str
    observation: str = ""
    analysis: str = ""
    insight: str = ""
    action_items: list[ActionItem] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source_key: str | None = None
