"""Infrastructure layer - snapshot persistence."""

from .snapshot import SnapshotError, SnapshotStore

__all__ = ["SnapshotError", "SnapshotStore"]
