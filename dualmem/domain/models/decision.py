"""Decision tree models (System 2).

Trees are stored as an arena: nodes live in a dict keyed by id and refer
to their children by id, so there are no object cycles to manage.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import DecisionNodeKind, EvidenceType


class Evidence(BaseModel):
    type: EvidenceType
    description: str = ""
    strength: float = Field(..., ge=0.0, le=1.0)
    source: str = "unknown"
    timestamp: datetime | None = None


class DecisionNode(BaseModel):
    """A node in a decision tree.

    ``condition`` holds key/value pairs that must all be present in an
    evaluation context for the node to be eligible.
    """

    id: str
    kind: DecisionNodeKind
    description: str = ""
    condition: dict[str, Any] = Field(default_factory=dict)
    parent_id: str | None = None
    children: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    evidence: list[Evidence] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)


class DecisionTreeMetadata(BaseModel):
    domain: str
    accuracy: float = 0.0
    last_updated: datetime | None = None
    usage_count: int = 0


class DecisionTree(BaseModel):
    """One evidence-weighted tree per domain."""

    id: str
    root_id: str
    nodes: dict[str, DecisionNode] = Field(default_factory=dict)
    metadata: DecisionTreeMetadata
    next_index: int = Field(default=1, description="Counter for node ids")


class DecisionResult(BaseModel):
    """Outcome of walking a tree against a context."""

    tree_id: str
    path: list[str] = Field(default_factory=list, description="Visited node IDs")
    leaf_id: str
    leaf_kind: DecisionNodeKind
    description: str = ""
    confidence: float = 0.0
