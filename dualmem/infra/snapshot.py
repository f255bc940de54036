"""JSON snapshot persistence for engine state.

Snapshots are optional: the engine is fully in-memory and only the
container decides whether to load one at start and write one at close.
Reads and writes are serialized across processes with a file lock.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from ..domain.exceptions import DualMemError

logger = logging.getLogger(__name__)


class SnapshotError(DualMemError):
    """Raised when a snapshot cannot be read or written."""


class SnapshotStore:
    """Load and save engine state as a single JSON document."""

    def __init__(self, path: Path, lock_timeout: float = 10.0) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, state: dict[str, Any]) -> None:
        """Write ``state`` atomically (temp file + rename).

        Raises:
            SnapshotError: If the lock cannot be acquired.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                tmp_path.write_text(json.dumps(state, default=str), encoding="utf-8")
                os.replace(tmp_path, self.path)
        except Timeout as e:
            raise SnapshotError(f"Could not lock snapshot {self.path}") from e
        logger.info(f"Saved snapshot to {self.path}")

    def load(self) -> dict[str, Any] | None:
        """Read the snapshot, or None if there is none.

        Raises:
            SnapshotError: If the lock times out or the file is corrupt.
        """
        if not self.path.exists():
            return None
        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                raw = self.path.read_text(encoding="utf-8")
        except Timeout as e:
            raise SnapshotError(f"Could not lock snapshot {self.path}") from e
        try:
            state = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Corrupt snapshot {self.path}: {e}") from e
        logger.info(f"Loaded snapshot from {self.path}")
        return state
