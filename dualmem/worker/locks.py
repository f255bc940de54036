"""Fair mutual exclusion for structural store mutation.

The engine and coordinator share one ``FairLock``. Waiters are served
strictly in arrival order, so a busy maintenance loop cannot starve the
event drain (or the other way round). The lock is reentrant for its
owning thread.
"""

from __future__ import annotations

import threading
from collections import deque


class FairLock:
    """FIFO, reentrant lock built on a condition variable."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._waiters: deque[object] = deque()
        self._owner: int | None = None
        self._depth = 0

    def acquire(self, timeout: float | None = None) -> bool:
        """Acquire the lock.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            True if acquired, False on timeout
        """
        me = threading.get_ident()
        with self._cond:
            if self._owner == me:
                self._depth += 1
                return True

            token = object()
            self._waiters.append(token)
            acquired = self._cond.wait_for(
                lambda: self._owner is None and self._waiters[0] is token,
                timeout=timeout,
            )
            if not acquired:
                self._waiters.remove(token)
                # The head of the queue may have changed
                self._cond.notify_all()
                return False

            self._waiters.popleft()
            self._owner = me
            self._depth = 1
            return True

    def release(self) -> None:
        with self._cond:
            if self._owner != threading.get_ident():
                raise RuntimeError("Cannot release a lock owned by another thread")
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
                self._cond.notify_all()

    def locked(self) -> bool:
        with self._cond:
            return self._owner is not None

    @property
    def waiting(self) -> int:
        """Number of threads queued for the lock."""
        with self._cond:
            return len(self._waiters)

    def __enter__(self) -> FairLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
