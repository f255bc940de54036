"""Background workers - fair locking and periodic scheduling."""

from .locks import FairLock
from .scheduler import CancellationToken, PeriodicTask, TaskScheduler

__all__ = ["CancellationToken", "FairLock", "PeriodicTask", "TaskScheduler"]
