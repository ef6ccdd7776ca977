"""In-memory backlog (default)."""

from __future__ import annotations

from collections import deque

from admitq.core.logging import get_logger

from ..task import Task

logger = get_logger(__name__)


class MemoryBacklog:
    """FIFO backlog held in process memory.

    Tasks pushed while ``max_queued`` tasks are already waiting are dropped
    without an error.

    Example:
        >>> backlog = MemoryBacklog(max_queued=2)
        >>> await backlog.enqueue(Task(args=(1,)))
        True
    """

    name = "memory"

    def __init__(self, max_queued: int | None = None) -> None:
        self.max_queued = max_queued
        self._queue: deque[Task] = deque()

    async def is_empty(self) -> bool:
        return not self._queue

    async def size(self) -> int:
        return len(self._queue)

    async def dequeue_next(self) -> Task | None:
        if not self._queue:
            return None
        return self._queue.popleft()

    async def enqueue(self, task: Task) -> bool:
        if self.max_queued is not None and len(self._queue) >= self.max_queued:
            logger.debug("backlog.dropped", backlog=self.name, task_id=task.task_id)
            return False
        self._queue.append(task)
        return True

    async def clear(self) -> None:
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._queue)
