"""Periodic background tasks with cancellation tokens.

Three schedules run next to the query path: the event-queue drain, the
coordinator sync timer and the coordinator optimization timer (plus
cache cleanup and System 1 maintenance). Each is a ``PeriodicTask`` on
its own daemon thread. Intervals are read from a callable on every tick
so config hot-reloads apply without restarting the task.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-way cancellation flag that sleeping tasks can wait on."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


class PeriodicTask:
    """Runs ``func`` every ``interval()`` seconds until cancelled.

    Failures are logged and counted; they never stop the loop.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], object],
        interval: Callable[[], float],
    ) -> None:
        self.name = name
        self._func = func
        self._interval = interval
        self._token = CancellationToken()
        self._thread: threading.Thread | None = None
        self.runs = 0
        self.failures = 0
        self.last_duration: float | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def token(self) -> CancellationToken:
        return self._token

    def start(self) -> None:
        if self.is_running:
            return
        self._token = CancellationToken()
        self._thread = threading.Thread(
            target=self._loop, name=f"dualmem-{self.name}", daemon=True
        )
        self._thread.start()
        logger.debug(f"Started periodic task {self.name}")

    def stop(self, timeout: float = 5.0) -> None:
        self._token.cancel()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.debug(f"Stopped periodic task {self.name}")

    def run_once(self) -> bool:
        """Run the task body once; returns False if it raised."""
        start = time.perf_counter()
        try:
            self._func()
            return True
        except Exception:
            self.failures += 1
            logger.exception(f"Periodic task {self.name} failed")
            return False
        finally:
            self.runs += 1
            self.last_duration = time.perf_counter() - start

    def _loop(self) -> None:
        token = self._token
        while not token.wait(max(self._interval(), 0.01)):
            self.run_once()


class TaskScheduler:
    """Owns a set of named periodic tasks."""

    def __init__(self) -> None:
        self.tasks: dict[str, PeriodicTask] = {}

    def add(
        self,
        name: str,
        func: Callable[[], object],
        interval: Callable[[], float],
    ) -> PeriodicTask:
        if name in self.tasks:
            self.tasks[name].stop()
        task = PeriodicTask(name, func, interval)
        self.tasks[name] = task
        return task

    def start(self) -> None:
        for task in self.tasks.values():
            task.start()
        logger.info(f"Scheduler started {len(self.tasks)} tasks")

    def stop(self, timeout: float = 5.0) -> None:
        for task in self.tasks.values():
            task.stop(timeout)
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return any(task.is_running for task in self.tasks.values())
