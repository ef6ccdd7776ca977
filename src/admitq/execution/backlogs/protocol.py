"""Backlog Protocol - storage for tasks waiting on an admission slot.

Manifesto:
The scheduler only needs an ordered list it can append to and pop from.
Keeping that behind a ``typing.Protocol`` lets overflow live in process
memory or in an external store without the scheduler knowing which.

ARCHITECTURE
────────────
::

    Backlog (Protocol, all coroutines)
      ├── .is_empty()       ─ True when nothing is queued
      ├── .size()           ─ number of queued tasks
      ├── .dequeue_next()   ─ pop the oldest task, or None
      ├── .enqueue(task)    ─ append; silently drop beyond capacity
      └── .clear()          ─ drop every queued task

    Implementations:
      MemoryBacklog  ─ collections.deque   (default)
      RedisBacklog   ─ Redis list          (shared / persisted)

The scheduler serialises its own calls. A backlog shared between
processes must guarantee atomic FIFO semantics itself.

Tags:
    admitq, execution, backlog, protocol, interface
"""

from typing import Protocol, runtime_checkable

from ..task import Task


@runtime_checkable
class Backlog(Protocol):
    """Ordered storage for not-yet-admitted tasks.

    Example implementation:
        >>> class ListBacklog:
        ...     def __init__(self):
        ...         self._items = []
        ...     async def is_empty(self) -> bool:
        ...         return not self._items
        ...     async def size(self) -> int:
        ...         return len(self._items)
        ...     async def dequeue_next(self):
        ...         return self._items.pop(0) if self._items else None
        ...     async def enqueue(self, task) -> bool:
        ...         self._items.append(task)
        ...         return True
        ...     async def clear(self) -> None:
        ...         self._items.clear()
    """

    async def is_empty(self) -> bool:
        """True when no task is queued."""
        ...

    async def size(self) -> int:
        """Number of queued tasks."""
        ...

    async def dequeue_next(self) -> Task | None:
        """Remove and return the oldest task, or None when empty."""
        ...

    async def enqueue(self, task: Task) -> bool:
        """Append ``task`` at the tail.

        Returns:
            False when the backlog was at capacity and the task was
            dropped. Dropping is never an error.
        """
        ...

    async def clear(self) -> None:
        """Remove every queued task. Admitted tasks are unaffected."""
        ...
