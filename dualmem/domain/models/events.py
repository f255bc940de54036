"""Ingestion events, queries and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .enums import MemoryEventKind, Priority, QueryType, ResponseSource


class EventMetadata(BaseModel):
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    source: str = Field(default="unknown", description="Emitting collaborator")
    priority: Priority = Priority.MEDIUM
    tags: list[str] = Field(default_factory=list)


class MemoryEvent(BaseModel):
    """The single unit of ingestion.

    ``kind`` is normally a :class:`MemoryEventKind`; unrecognised kinds
    are kept as plain strings and ignored by the stores.
    """

    id: str = Field(..., description="Unique identifier")
    kind: MemoryEventKind | str = Field(..., description="What happened")
    timestamp: datetime
    user_id: str = "default"
    session_id: str = "default"
    data: dict[str, Any] = Field(default_factory=dict)
    reasoning: str | None = None
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    @field_validator("kind", mode="before")
    @classmethod
    def _known_kind(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, MemoryEventKind):
            try:
                return MemoryEventKind(value)
            except ValueError:
                return value
        return value

    @property
    def kind_value(self) -> str:
        return self.kind.value if isinstance(self.kind, MemoryEventKind) else self.kind


class MemoryQuery(BaseModel):
    """A read request against the engine."""

    type: QueryType
    query: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    urgency: Priority = Priority.MEDIUM
    limit: int = Field(default=10, ge=1, le=1000)


class MemoryResponse(BaseModel):
    """Result of a query, with provenance."""

    data: list[Any] = Field(default_factory=list)
    source: ResponseSource
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    latency_ms: float = 0.0
    cached: bool = False
    suggestions: list[str] = Field(default_factory=list)
    error: str | None = Field(None, description="Set when the query degraded")


class OperationMetrics(BaseModel):
    """Counters exposed by the engine to the coordinator."""

    total_operations: int = 0
    system1_operations: int = 0
    system2_operations: int = 0
    average_latency_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float = 0.0
    errors: int = 0
    error_rate: float = 0.0
    slow_single_system_operations: int = 0
    events_processed: int = 0
    queue_size: int = 0
    cache_size: int = 0
