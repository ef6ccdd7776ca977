"""Per-task deadlines for the executor.

A :class:`TaskDeadline` arms a loop timer when a task starts and fires a
callback if the task is still running when it expires. Expiry does not
cancel the task's coroutine: the queue stops waiting, the work keeps going
and its eventual outcome is discarded.

Architecture:
    ::

        TaskDeadline(seconds, on_expire)
          ├── .start()       ─ loop.call_later(seconds, _fire)
          ├── .cancel()      ─ disarm (no-op once fired)
          ├── .remaining()   ─ seconds left, negative once expired
          ├── .elapsed       ─ seconds since start
          └── .expired       ─ True after _fire ran

    Compared with ``asyncio.timeout``/``wait_for``, nothing is cancelled
    and the timer works for callback-style workers that never hand the
    executor an awaitable.

Examples:
    >>> deadline = TaskDeadline(0.05, on_expire=lambda: print("late"))
    >>> deadline.start()
    >>> deadline.cancel()

Tags:
    timeout, deadline, execution, admitq
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class TaskDeadline:
    """One-shot timer bounded to a single task run.

    Attributes:
        seconds: Timeout duration
        expired: True once the timer fired
    """

    def __init__(
        self,
        seconds: float,
        on_expire: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {seconds}")
        self.seconds = seconds
        self.expired = False
        self._on_expire = on_expire
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._start_time: float | None = None

    def start(self) -> None:
        """Arm the timer on the running loop."""
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._start_time = loop.time()
        self._handle = loop.call_later(self.seconds, self._fire)

    def cancel(self) -> None:
        """Disarm the timer. Safe to call repeatedly."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def elapsed(self) -> float:
        """Seconds since :meth:`start` (0.0 if never started)."""
        if self._start_time is None or self._loop is None:
            return 0.0
        return self._loop.time() - self._start_time

    def remaining(self) -> float:
        """Seconds until expiry; negative once expired."""
        return self.seconds - self.elapsed

    def _fire(self) -> None:
        self._handle = None
        self.expired = True
        self._on_expire()
