"""Domain layer - Core business logic and models."""

from .exceptions import (
    CapacityExceededError,
    DualMemError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .models import (
    KnowledgeNode,
    MemoryEvent,
    MemoryEventKind,
    MemoryQuery,
    MemoryResponse,
    QueryType,
    ReasoningTrace,
)

__all__ = [
    # Exceptions
    "DualMemError",
    "NotFoundError",
    "InvalidStateError",
    "CapacityExceededError",
    "ValidationError",
    # Models
    "KnowledgeNode",
    "MemoryEvent",
    "MemoryEventKind",
    "MemoryQuery",
    "MemoryResponse",
    "QueryType",
    "ReasoningTrace",
]
