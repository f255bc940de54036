"""Knowledge node and concept graph models (System 1)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import EdgeKind, Level, NodeKind


class NodeMetadata(BaseModel):
    """Descriptive metadata attached to a knowledge node."""

    language: str | None = Field(None, description="Programming language")
    framework: str | None = Field(None, description="Framework, if any")
    domain: str | None = Field(None, description="Problem domain")
    complexity: Level = Field(default=Level.MEDIUM, description="Rough complexity")
    quality: float = Field(default=0.5, ge=0.0, le=1.0, description="Quality rating")
    relevance: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Relevance, decays over time"
    )


class KnowledgeNode(BaseModel):
    """An atomic stored fact, pattern or concept.

    Identity fields (``id``, ``kind``, ``name``) never change after
    creation. ``confidence``, ``access_count`` and ``metadata.relevance``
    are reinforced on access and decay on a schedule.
    """

    id: str = Field(..., description="Unique identifier")
    kind: NodeKind = Field(..., description="Kind of node")
    name: str = Field(..., description="Human-readable name")
    content: str = Field(default="", description="Node content")
    embedding: list[float] = Field(
        default_factory=list, description="Caller-supplied embedding vector"
    )
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(..., description="Creation timestamp")
    last_accessed: datetime = Field(..., description="Last access timestamp")
    access_count: int = Field(default=0, ge=0)
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)
    merged_from: list[str] = Field(
        default_factory=list, description="IDs of nodes compressed into this one"
    )


class ConceptEdge(BaseModel):
    """A directed relationship between two knowledge nodes."""

    id: str = Field(..., description="Unique identifier")
    source_id: str = Field(..., description="Source node ID")
    target_id: str = Field(..., description="Target node ID")
    kind: EdgeKind = Field(..., description="Relationship kind")
    weight: float = Field(default=1.0, ge=0.0)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class ConceptCluster(BaseModel):
    """A derived group of similar nodes."""

    id: str = Field(..., description="Cluster identifier")
    node_ids: list[str] = Field(default_factory=list)
    centroid: list[float] = Field(default_factory=list)
    coherence: float = Field(
        default=0.0, description="Mean pairwise similarity of member embeddings"
    )


class RelatedConcept(BaseModel):
    """A node reached while traversing the concept graph."""

    node: KnowledgeNode
    depth: int = Field(..., description="Number of hops from the start node")
    via_edge: str | None = Field(None, description="Edge used to reach the node")
