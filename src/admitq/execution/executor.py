"""Task Executor - run one task to exactly one reported outcome.

WHY
───
Workers are caller code. They may finish late, fail, or (when written in
callback style) call their completion callback twice. The executor sits
between the worker and the scheduler and guarantees the scheduler hears
about each task exactly once, no matter what the worker does.

ARCHITECTURE
────────────
::

    TaskExecutor(worker, style)
      └── .run(task, timeout, on_finished) -> TaskCompletion
              │
              ├── TaskDeadline (timeout > 0)  ─ first to fire wins
              │
              ├── CALLBACK:  worker(*args, completion)   (called inline)
              └── COROUTINE: await worker(*args)          (asyncio task)

    TaskCompletion(error=None, result=None)
      ├── first call           ─ cancel deadline, report outcome
      ├── second call          ─ WorkerProtocolError (raised to the caller)
      └── call after timeout   ─ ignored, timeout outcome stands

Related modules:
    timeout.py    : TaskDeadline
    scheduler.py  : consumes on_finished reports

Example::

    executor = TaskExecutor(fetch, style=WorkerStyle.COROUTINE)
    executor.run(Task(args=("https://example.com",)), 5.0, on_finished)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from admitq.core.errors import TaskTimedOut, WorkerProtocolError
from admitq.core.logging import get_logger

from .task import Task
from .timeout import TaskDeadline

logger = get_logger(__name__)

FinishedHandler = Callable[[Task, BaseException | None, Any], None]


class WorkerStyle(str, Enum):
    """How a worker reports its outcome."""

    COROUTINE = "coroutine"
    """``async def worker(*args)``; the return value is the result"""

    CALLBACK = "callback"
    """``def worker(*args, done)``; the worker calls ``done(error, result)``"""


class TaskCompletion:
    """Completion sink for one task run.

    Callback-style workers receive this object as their last argument and
    call it as ``done()``, ``done(None, result)`` or ``done(error)``.
    """

    def __init__(self, task: Task, on_finished: FinishedHandler, timeout: float = 0.0):
        self.task = task
        self.reported = False
        self.timed_out = False
        self._on_finished = on_finished
        self._deadline = TaskDeadline(timeout, self._expire) if timeout > 0 else None

    def start(self) -> None:
        if self._deadline is not None:
            self._deadline.start()

    def __call__(self, error: BaseException | None = None, result: Any = None) -> None:
        if self.timed_out:
            logger.debug("executor.late_completion_ignored", task_id=self.task.task_id)
            return
        if self.reported:
            raise WorkerProtocolError().with_context(task_id=self.task.task_id)
        self.reported = True
        if self._deadline is not None:
            self._deadline.cancel()
        self._on_finished(self.task, error, result)

    @property
    def pending(self) -> bool:
        """True until an outcome has been reported."""
        return not self.reported

    def _expire(self) -> None:
        if self.reported:
            return
        self.timed_out = True
        self.reported = True
        timeout = self._deadline.seconds if self._deadline is not None else None
        logger.warning(
            "executor.task_timed_out",
            task_id=self.task.task_id,
            timeout=timeout,
        )
        error = TaskTimedOut(task_args=self.task.args, timeout=timeout)
        error.with_context(task_id=self.task.task_id)
        self._on_finished(self.task, error, None)


class TaskExecutor:
    """Runs tasks against a single worker.

    The executor holds no counters; it only turns a worker call into one
    ``on_finished(task, error, result)`` report.
    """

    def __init__(self, worker: Callable[..., Any], style: WorkerStyle = WorkerStyle.COROUTINE) -> None:
        self.worker = worker
        self.style = WorkerStyle(style)
        self._running: set[asyncio.Task[Any]] = set()

    @property
    def in_flight(self) -> int:
        """Coroutine workers still executing (including timed-out ones)."""
        return len(self._running)

    def run(self, task: Task, timeout: float, on_finished: FinishedHandler) -> TaskCompletion:
        """Start ``task`` and return its completion sink.

        Raises:
            WorkerProtocolError: A callback-style worker reported twice
                before returning.
        """
        completion = TaskCompletion(task, on_finished, timeout)
        completion.start()

        if self.style is WorkerStyle.CALLBACK:
            self._call(task, completion)
        else:
            running = asyncio.ensure_future(self._await(task, completion))
            self._running.add(running)
            running.add_done_callback(self._running.discard)
        return completion

    def _call(self, task: Task, completion: TaskCompletion) -> None:
        try:
            self.worker(*task.args, completion)
        except WorkerProtocolError:
            raise
        except Exception as e:
            if not completion.pending:
                raise
            logger.debug("executor.worker_raised", task_id=task.task_id, error=str(e))
            completion(e)

    async def _await(self, task: Task, completion: TaskCompletion) -> None:
        try:
            result = await self.worker(*task.args)
        except Exception as e:
            completion(e)
        else:
            completion(None, result)
