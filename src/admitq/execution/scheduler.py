"""Admission Scheduler - concurrency ceiling, pacing gate and backlog.

WHY
───
Bounding how many tasks run at once (and how often a new one may start)
protects whatever the workers talk to. The scheduler owns the counters
that enforce both limits and decides, each time a slot frees up, whether
the next backlog task may start.

ARCHITECTURE
────────────
::

    push_task(task)
      ├── admitted < concurrency ─ admit: admitted++, active++, dispatch
      │                            (emit "full" on reaching the ceiling)
      └── otherwise              ─ backlog.enqueue(task)  (drop if at capacity)

    executor report ─ active--, finished++, deliver outcome
                      (no sink + error → emit "error")

    slot release (task completed AND pacing timer fired)
      ├── backlog has a task ─ active++, dispatch   (emit "empty" when drained)
      └── backlog is empty   ─ admitted--           (emit "drain" at zero)

    Slot states: queued → admitted → (pacing-gated) → released

Counters
────────
admitted  tasks holding a slot, including finished ones still inside the
          pacing window
active    tasks whose outcome has not been reported yet
finished  total outcomes reported (never decreases)

Transitions that touch the backlog run under one ``asyncio.Lock`` so an
async backlog cannot interleave an enqueue with a slot release.

Related modules:
    executor.py : runs a task, reports once
    queue.py    : AdmissionQueue, the caller-facing entry point
    backlogs/   : Backlog protocol and implementations
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from admitq.core.errors import ConfigError
from admitq.core.logging import get_logger
from admitq.core.signals import SignalEmitter, SignalHandler

from .backlogs import Backlog, MemoryBacklog
from .executor import TaskExecutor, WorkerStyle
from .task import Task

logger = get_logger(__name__)

SIGNALS = ("full", "empty", "drain", "error")


class QueueOptions(BaseModel):
    """Validated construction options."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    concurrency: int = Field(default=1, ge=1)
    pacing_interval: float = Field(default=0.0, ge=0.0)
    timeout: float = Field(default=0.0, ge=0.0)
    max_queued: int | None = Field(default=None, ge=0)


@dataclass
class _Slot:
    """Bookkeeping for one admitted task."""

    task: Task
    generation: int
    completed: bool = False
    paced: bool = True
    pacing_timer: asyncio.TimerHandle | None = None


class AdmissionScheduler:
    """Admits tasks up to ``concurrency`` at a time, optionally paced.

    Parameters
    ----------
    worker : callable
        The function every task is run against.
    style : WorkerStyle
        How ``worker`` reports its outcome.
    concurrency : int
        Maximum simultaneously admitted tasks (default 1).
    pacing_interval : float
        Minimum seconds between admissions into the same slot (0 disables).
    timeout : float
        Seconds before a running task is reported as timed out (0 disables).
    max_queued : int | None
        Capacity of the default backlog; None is unbounded.
    backlog : Backlog | None
        Custom backlog; defaults to ``MemoryBacklog(max_queued)``.

    Options are public attributes and may be changed after construction.
    """

    def __init__(
        self,
        worker: Callable[..., Any],
        *,
        style: WorkerStyle = WorkerStyle.COROUTINE,
        concurrency: int = 1,
        pacing_interval: float = 0.0,
        timeout: float = 0.0,
        max_queued: int | None = None,
        backlog: Backlog | None = None,
    ) -> None:
        try:
            options = QueueOptions(
                concurrency=concurrency,
                pacing_interval=pacing_interval,
                timeout=timeout,
                max_queued=max_queued,
            )
        except ValidationError as e:
            first = e.errors()[0]
            option = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigError(
                f"Invalid queue option {option!r}: {first.get('msg')}", cause=e
            ).with_context(option=option) from e

        if backlog is not None and not isinstance(backlog, Backlog):
            raise ConfigError(
                f"backlog must implement the Backlog protocol, got {type(backlog).__name__}"
            ).with_context(option="backlog")

        self.concurrency = options.concurrency
        self.pacing_interval = options.pacing_interval
        self.timeout = options.timeout
        self.max_queued = options.max_queued
        self.backlog: Backlog = backlog if backlog is not None else MemoryBacklog(options.max_queued)
        self.executor = TaskExecutor(worker, style=style)
        self.signals = SignalEmitter()

        self.admitted = 0
        self.active = 0
        self.finished = 0

        self._pacing_timers: set[asyncio.TimerHandle] = set()
        self._generation = 0
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task[Any]] = set()

    # ── Signals ──────────────────────────────────────────────────────

    def on(self, signal: str, handler: SignalHandler) -> str:
        """Subscribe to ``full``, ``empty``, ``drain`` or ``error``."""
        self._check_signal(signal)
        return self.signals.on(signal, handler)

    def once(self, signal: str, handler: SignalHandler) -> str:
        self._check_signal(signal)
        return self.signals.once(signal, handler)

    def off(self, signal: str, handler: SignalHandler | None = None) -> int:
        return self.signals.off(signal, handler)

    @staticmethod
    def _check_signal(signal: str) -> None:
        if signal not in SIGNALS:
            raise ValueError(f"Unknown signal {signal!r}; expected one of {', '.join(SIGNALS)}")

    # ── Admission ────────────────────────────────────────────────────

    async def push_task(self, task: Task) -> bool:
        """Admit ``task`` now or store it in the backlog.

        Returns:
            False if the backlog was at capacity and the task was dropped.

        Raises:
            WorkerProtocolError: A callback-style worker reported twice
                while being started.
        """
        async with self._lock:
            if self.admitted < self.concurrency:
                self.admitted += 1
                self.active += 1
                if self.admitted == self.concurrency:
                    self.signals.emit("full")
                self._dispatch(task)
                return True

            stored = await self.backlog.enqueue(task)
            if stored is False:
                logger.debug("queue.dropped", task_id=task.task_id)
                return False
            logger.debug("queue.enqueued", task_id=task.task_id)
            return True

    def _dispatch(self, task: Task) -> None:
        slot = _Slot(task=task, generation=self._generation)
        if self.pacing_interval > 0:
            slot.paced = False
            loop = asyncio.get_running_loop()
            slot.pacing_timer = loop.call_later(self.pacing_interval, self._on_pacing_elapsed, slot)
            self._pacing_timers.add(slot.pacing_timer)

        logger.debug(
            "queue.admitted",
            task_id=task.task_id,
            admitted=self.admitted,
            active=self.active,
        )
        self.executor.run(
            task,
            self.timeout,
            lambda t, error, result: self._on_task_finished(slot, error, result),
        )

    def _on_pacing_elapsed(self, slot: _Slot) -> None:
        if slot.pacing_timer is not None:
            self._pacing_timers.discard(slot.pacing_timer)
            slot.pacing_timer = None
        slot.paced = True
        if slot.completed:
            self._release(slot)

    def _on_task_finished(self, slot: _Slot, error: BaseException | None, result: Any) -> None:
        current = slot.generation == self._generation
        if current:
            self.active -= 1
        self.finished += 1
        slot.completed = True

        try:
            self._deliver(slot.task, error, result)
        finally:
            if slot.paced:
                self._release(slot)

    def _deliver(self, task: Task, error: BaseException | None, result: Any) -> None:
        if task.callback is not None:
            task.callback(error, result)
            return
        if error is None:
            return
        if not self.signals.emit("error", error):
            logger.error(
                "queue.unhandled_task_error",
                task_id=task.task_id,
                error=str(error),
                error_type=type(error).__name__,
            )

    def _release(self, slot: _Slot) -> None:
        # Slots admitted before a shutdown no longer hold capacity.
        if slot.generation != self._generation:
            return
        self._spawn(self._admit_next(slot.generation))

    async def _admit_next(self, generation: int) -> None:
        async with self._lock:
            if generation != self._generation:
                return

            task: Task | None = None
            drained_backlog = False
            if self.admitted <= self.concurrency:
                try:
                    task = await self.backlog.dequeue_next()
                except Exception as e:
                    logger.error("queue.backlog_failed", error=str(e), exc_info=e)

            if task is not None:
                # A dequeued task always runs; a failed check only skips "empty".
                try:
                    drained_backlog = await self.backlog.is_empty()
                except Exception as e:
                    logger.warning("queue.backlog_check_failed", task_id=task.task_id, error=str(e))

                self.active += 1
                try:
                    self._dispatch(task)
                finally:
                    if drained_backlog:
                        self.signals.emit("empty")
                return

            self.admitted -= 1
            if self.admitted == 0:
                self.signals.emit("drain")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("queue.admission_failed", error=str(exc), exc_info=exc)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def shutdown(self) -> None:
        """Empty the backlog and cancel pacing timers.

        Tasks already running finish and still reach their sinks; their
        outcomes count towards ``finished`` but no longer towards
        ``admitted``/``active``, and they never trigger an admission. The
        queue accepts new tasks afterwards.
        """
        async with self._lock:
            self._generation += 1
            await self.backlog.clear()
            for handle in self._pacing_timers:
                handle.cancel()
            self._pacing_timers.clear()
            self.admitted = 0
            self.active = 0
        logger.info("queue.shutdown", finished=self.finished)

    die = shutdown

    async def drained(self) -> None:
        """Wait until no task is admitted or queued."""
        if self.admitted == 0 and await self.backlog.is_empty():
            return
        done = asyncio.get_running_loop().create_future()

        def _on_drain() -> None:
            if not done.done():
                done.set_result(None)

        self.signals.once("drain", _on_drain)
        await done

    # ── Inspection ───────────────────────────────────────────────────

    async def queued(self) -> int:
        """Number of tasks waiting in the backlog."""
        return await self.backlog.size()

    async def is_full(self) -> bool:
        """True when the backlog has reached ``max_queued``."""
        if self.max_queued is None:
            return False
        return await self.backlog.size() >= self.max_queued

    def stats(self) -> dict[str, Any]:
        """Snapshot of the counters for logging / health endpoints."""
        return {
            "concurrency": self.concurrency,
            "pacing_interval": self.pacing_interval,
            "timeout": self.timeout,
            "admitted": self.admitted,
            "active": self.active,
            "finished": self.finished,
            "pacing_timers": len(self._pacing_timers),
        }
