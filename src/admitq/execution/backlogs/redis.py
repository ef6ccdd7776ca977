"""
Redis-backed backlog.

Manifesto:
    Overflow that should survive a process restart, or be inspected from
    outside the process, belongs in an external store. A Redis list gives
    atomic RPUSH/LPOP, which is all a FIFO backlog needs.

Queued tasks are stored as JSON (``{"task_id": ..., "args": [...]}``) so
arguments must be JSON-serialisable. Completion sinks cannot leave the
process: they stay in a local map keyed by ``task_id`` and are re-attached
on dequeue. A task queued by another process comes back without a sink,
so its failures go to the queue's ``error`` signal.

Capacity is enforced inside Redis with a Lua script (LLEN check and RPUSH
in one atomic step), so concurrent producers cannot overshoot
``max_queued``.

Requires: ``pip install redis`` or ``admitq[redis]``

Example::

    backlog = RedisBacklog("redis://localhost:6379/0", key="downloads")
    await backlog.connect()  # optional, the first operation connects
    queue = AdmissionQueue(download, concurrency=4, backlog=backlog)

Tags:
    admitq, backlog, redis, persistence, import-guarded
"""

from __future__ import annotations

import json
from typing import Any

from admitq.core.errors import BacklogError
from admitq.core.logging import get_logger

from ..task import CompletionSink, Task

__all__ = ["RedisBacklog"]

logger = get_logger(__name__)

# KEYS[1] = list key, ARGV[1] = payload, ARGV[2] = capacity
_BOUNDED_PUSH = """
if redis.call('LLEN', KEYS[1]) < tonumber(ARGV[2]) then
  return redis.call('RPUSH', KEYS[1], ARGV[1])
end
return 0
"""


class RedisBacklog:
    """FIFO backlog stored in a Redis list.

    Args:
        redis_url: Connection URL used by :meth:`connect`
        key: Redis list key
        max_queued: Capacity; None means unbounded
        client: Already-connected ``redis.asyncio`` client (skips :meth:`connect`)
    """

    name = "redis"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        *,
        key: str = "admitq:backlog",
        max_queued: int | None = None,
        client: Any = None,
    ) -> None:
        self._redis_url = redis_url
        self.key = key
        self.max_queued = max_queued
        self._redis: Any = client
        self._owns_client = False
        self._sinks: dict[str, CompletionSink] = {}

    async def connect(self) -> None:
        """Create the Redis client."""
        if self._redis is not None:
            return
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "redis package required for RedisBacklog. "
                "Install with: pip install admitq[redis]"
            ) from e

        self._redis = aioredis.from_url(self._redis_url)
        self._owns_client = True
        logger.info("backlog.connected", backlog=self.name, key=self.key)

    async def close(self) -> None:
        """Close the client if this backlog created it."""
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
        self._redis = None
        self._owns_client = False

    async def _client(self) -> Any:
        if self._redis is None:
            await self.connect()
        return self._redis

    async def is_empty(self) -> bool:
        return await self.size() == 0

    async def size(self) -> int:
        client = await self._client()
        return int(await client.llen(self.key))

    async def dequeue_next(self) -> Task | None:
        client = await self._client()
        raw = await client.lpop(self.key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise BacklogError(
                "Undecodable task payload in backlog", cause=e
            ).with_context(backlog=self.name, key=self.key)
        task_id = data.get("task_id")
        callback = self._sinks.pop(task_id, None) if task_id else None
        return Task.from_dict(data, callback=callback)

    async def enqueue(self, task: Task) -> bool:
        try:
            payload = json.dumps(task.to_dict())
        except (TypeError, ValueError) as e:
            raise BacklogError(
                "Task arguments are not JSON-serialisable", cause=e
            ).with_context(backlog=self.name, task_id=task.task_id)

        client = await self._client()
        # Register the sink first so a dequeue racing the push still finds it.
        if task.callback is not None:
            self._sinks[task.task_id] = task.callback

        try:
            if self.max_queued is None:
                await client.rpush(self.key, payload)
                return True
            pushed = await client.eval(_BOUNDED_PUSH, 1, self.key, payload, self.max_queued)
        except Exception:
            self._sinks.pop(task.task_id, None)
            raise

        if not int(pushed):
            self._sinks.pop(task.task_id, None)
            logger.debug("backlog.dropped", backlog=self.name, task_id=task.task_id)
            return False
        return True

    async def clear(self) -> None:
        client = await self._client()
        await client.delete(self.key)
        self._sinks.clear()
