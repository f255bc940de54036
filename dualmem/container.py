"""Dependency injection container for Dualmem."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .config import Config, get_config
from .domain.services import (
    DualMemoryEngine,
    MemoryCoordinator,
    System1Store,
    System2Store,
)
from .infra.snapshot import SnapshotStore
from .worker import FairLock, TaskScheduler

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Container:
    """Dependency injection container.

    Both stores, the engine and the coordinator share one config, one
    clock, one structural lock and one scheduler.
    """

    config: Config
    clock: Callable[[], datetime] = field(default=_utc_now)
    _lock: FairLock | None = None
    _scheduler: TaskScheduler | None = None
    _system1: System1Store | None = None
    _system2: System2Store | None = None
    _engine: DualMemoryEngine | None = None
    _coordinator: MemoryCoordinator | None = None
    _snapshots: SnapshotStore | None = None
    _started: bool = False

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> Container:
        """Create a new container with the given config.

        Args:
            config: Optional config. Uses global config if not provided.
            clock: Optional time source shared by every component.

        Returns:
            A new Container instance.
        """
        return cls(config=config or get_config(), clock=clock or _utc_now)

    @property
    def lock(self) -> FairLock:
        if self._lock is None:
            self._lock = FairLock()
        return self._lock

    @property
    def scheduler(self) -> TaskScheduler:
        if self._scheduler is None:
            self._scheduler = TaskScheduler()
        return self._scheduler

    @property
    def system1(self) -> System1Store:
        """Get System 1 (lazy initialization)."""
        if self._system1 is None:
            self._system1 = System1Store(self.config.system1, clock=self.clock)
        return self._system1

    @property
    def system2(self) -> System2Store:
        """Get System 2 (lazy initialization)."""
        if self._system2 is None:
            self._system2 = System2Store(self.config.system2, clock=self.clock)
        return self._system2

    @property
    def engine(self) -> DualMemoryEngine:
        """Get the engine (lazy initialization)."""
        if self._engine is None:
            self._engine = DualMemoryEngine(
                config=self.config,
                system1=self.system1,
                system2=self.system2,
                lock=self.lock,
                clock=self.clock,
                scheduler=self.scheduler,
            )
        return self._engine

    @property
    def coordinator(self) -> MemoryCoordinator:
        """Get the coordinator (lazy initialization)."""
        if self._coordinator is None:
            self._coordinator = MemoryCoordinator(
                self.engine, self.config.coordinator, clock=self.clock
            )
        return self._coordinator

    @property
    def snapshots(self) -> SnapshotStore:
        if self._snapshots is None:
            self._snapshots = SnapshotStore(self.config.snapshot_path)
        return self._snapshots

    def start(self) -> None:
        """Load the snapshot (if enabled) and start background tasks."""
        if self._started:
            return
        if self.config.persist_snapshots:
            state = self.snapshots.load()
            if state is not None:
                self.engine.import_state(state)
        self.engine.start()
        self.coordinator.start()
        self._started = True
        logger.info("Dualmem background tasks started")

    def close(self) -> None:
        """Stop background tasks and save the snapshot (if enabled)."""
        if self._coordinator is not None:
            self._coordinator.stop()
        if self._engine is not None:
            self._engine.stop()
            if self.config.persist_snapshots:
                self.snapshots.save(self._engine.export_state())
        self._started = False


# Module-level container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container.create()
    return _container


def reset_container() -> None:
    """Reset the container (for testing)."""
    global _container
    if _container is not None:
        _container.close()
    _container = None
