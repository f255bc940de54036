"""Coordinator audit records and reports."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import (
    ConflictStrategy,
    ConflictType,
    Level,
    SystemHealth,
    TransferType,
)


class SyncPoint(BaseModel):
    """One audited cross-layer transfer."""

    id: str
    transfer_type: TransferType
    timestamp: datetime
    latency_ms: float = 0.0
    success: bool = True
    changes: int = Field(default=0, description="Target-side writes performed")
    error: str | None = None


class SynchronizationReport(BaseModel):
    sync_points: list[SyncPoint] = Field(default_factory=list)
    total_changes: int = 0
    success: bool = True
    duration_ms: float = 0.0
    cancelled: bool = False


class SystemConflict(BaseModel):
    """A detected disagreement between the two stores."""

    id: str
    type: ConflictType
    description: str
    system1_value: Any = None
    system2_value: Any = None
    severity: Level = Level.MEDIUM


class ConflictResolution(BaseModel):
    id: str
    conflict_id: str
    conflict_type: ConflictType
    strategy: ConflictStrategy
    resolution: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    impact: Level = Level.LOW
    success: bool = True
    timestamp: datetime


class OptimizationRecommendation(BaseModel):
    """A suggested tuning change.

    ``priority`` is ``benefit / effort``. Automated recommendations below
    the risk threshold are applied immediately; the rest are mirrored as
    System 2 enhancements and referenced by ``enhancement_id``.
    """

    id: str
    target: str = Field(..., description="Subsystem the change affects")
    description: str
    benefit: float = Field(..., ge=0.0, le=10.0)
    effort: float = Field(..., gt=0.0, le=10.0)
    risk: float = Field(..., ge=0.0, le=10.0)
    priority: float = 0.0
    automated: bool = False
    applied: bool = False
    action: str | None = Field(None, description="Name of the automated action")
    parameters: dict[str, Any] = Field(default_factory=dict)
    enhancement_id: str | None = None
    error: str | None = None
    timestamp: datetime


class BehaviorPattern(BaseModel):
    """A behavioural pattern recognised in recent events."""

    kind: str
    subject: str
    occurrences: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    adaptation: str = ""


class CoordinationMetrics(BaseModel):
    sync_operations: int = 0
    optimization_runs: int = 0
    adaptation_events: int = 0
    cross_layer_transfers: int = 0
    applied_optimizations: int = 0
    conflicts_resolved: int = 0
    failed_items: int = 0
    average_sync_ms: float = 0.0
    system_health: SystemHealth = SystemHealth.GOOD
