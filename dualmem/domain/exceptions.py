"""Custom exceptions for Dualmem."""

from __future__ import annotations


class DualMemError(Exception):
    """Base exception for Dualmem."""

    pass


class ValidationError(DualMemError):
    """Raised when an event, query or config update is malformed."""

    pass


class NotFoundError(DualMemError):
    """Raised when an unknown id is referenced on a write path."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID '{entity_id}' not found")


class InvalidStateError(DualMemError):
    """Raised when a sealed or terminal entity is mutated."""

    def __init__(self, entity: str, entity_id: str, reason: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity} '{entity_id}' is in an invalid state: {reason}")


class CapacityExceededError(DualMemError):
    """Raised when an insert cannot proceed even after eviction."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Capacity of {capacity} exceeded after eviction")
