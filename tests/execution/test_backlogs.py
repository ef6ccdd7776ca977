"""Tests for the Backlog protocol, MemoryBacklog and RedisBacklog (fake Redis)."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from admitq.core.errors import BacklogError
from admitq.execution import AdmissionQueue, WorkerStyle
from admitq.execution.backlogs import Backlog, MemoryBacklog, RedisBacklog
from admitq.execution.task import Task


class FakeRedis:
    """Just enough of redis.asyncio.Redis for a list-backed backlog."""

    def __init__(self) -> None:
        self.lists: dict[str, list[bytes]] = {}
        self.closed = False

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def lpop(self, key):
        items = self.lists.get(key)
        if not items:
            return None
        return items.pop(0)

    async def rpush(self, key, value):
        items = self.lists.setdefault(key, [])
        items.append(value.encode() if isinstance(value, str) else value)
        return len(items)

    async def eval(self, script, numkeys, key, payload, capacity):
        if len(self.lists.get(key, [])) < int(capacity):
            return await self.rpush(key, payload)
        return 0

    async def delete(self, key):
        return 1 if self.lists.pop(key, None) is not None else 0

    async def aclose(self):
        self.closed = True


class TestProtocol:
    def test_implementations_satisfy_protocol(self):
        assert isinstance(MemoryBacklog(), Backlog)
        assert isinstance(RedisBacklog(client=FakeRedis()), Backlog)

    def test_plain_object_does_not(self):
        assert not isinstance(object(), Backlog)


class TestMemoryBacklog:
    @pytest.mark.asyncio
    async def test_fifo(self):
        backlog = MemoryBacklog()
        first, second = Task(args=(1,)), Task(args=(2,))
        await backlog.enqueue(first)
        await backlog.enqueue(second)

        assert await backlog.size() == 2
        assert await backlog.dequeue_next() is first
        assert await backlog.dequeue_next() is second
        assert await backlog.dequeue_next() is None
        assert await backlog.is_empty()

    @pytest.mark.asyncio
    async def test_capacity_drops_silently(self):
        backlog = MemoryBacklog(max_queued=2)
        stored = [await backlog.enqueue(Task(args=(i,))) for i in range(4)]

        assert stored == [True, True, False, False]
        assert len(backlog) == 2
        assert (await backlog.dequeue_next()).args == (0,)

    @pytest.mark.asyncio
    async def test_zero_capacity(self):
        backlog = MemoryBacklog(max_queued=0)
        assert await backlog.enqueue(Task()) is False
        assert await backlog.is_empty()

    @pytest.mark.asyncio
    async def test_clear(self):
        backlog = MemoryBacklog()
        for i in range(3):
            await backlog.enqueue(Task(args=(i,)))
        await backlog.clear()
        assert await backlog.size() == 0


class TestRedisBacklogInit:
    def test_defaults(self):
        backlog = RedisBacklog()
        assert backlog._redis_url == "redis://localhost:6379/0"
        assert backlog.key == "admitq:backlog"
        assert backlog.max_queued is None
        assert backlog._redis is None

    @pytest.mark.asyncio
    async def test_connect_without_redis_package(self):
        backlog = RedisBacklog()
        with patch.dict("sys.modules", {"redis.asyncio": None, "redis": None}):
            with pytest.raises(ImportError, match="admitq\\[redis\\]"):
                await backlog.connect()

    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        client = FakeRedis()
        aioredis = MagicMock()
        aioredis.from_url.return_value = client
        redis_pkg = MagicMock(asyncio=aioredis)

        backlog = RedisBacklog("redis://cache:6379/1")
        with patch.dict("sys.modules", {"redis": redis_pkg, "redis.asyncio": aioredis}):
            await backlog.connect()

        aioredis.from_url.assert_called_once_with("redis://cache:6379/1")
        assert backlog._redis is client

        await backlog.close()
        assert client.closed
        assert backlog._redis is None

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = FakeRedis()
        backlog = RedisBacklog(client=client)
        await backlog.connect()
        await backlog.close()
        assert not client.closed


class TestRedisBacklog:
    @pytest.mark.asyncio
    async def test_fifo_reattaches_callback(self):
        client = FakeRedis()
        backlog = RedisBacklog(client=client, key="jobs")

        def sink(error, result):
            return None

        task = Task(args=("a", 1), callback=sink)
        assert await backlog.enqueue(task)
        assert await backlog.enqueue(Task(args=("b", 2)))
        assert await backlog.size() == 2
        assert json.loads(client.lists["jobs"][0]) == {"task_id": task.task_id, "args": ["a", 1]}

        popped = await backlog.dequeue_next()
        assert popped == task
        assert popped.callback is sink

        second = await backlog.dequeue_next()
        assert second.args == ("b", 2)
        assert second.callback is None
        assert await backlog.dequeue_next() is None

    @pytest.mark.asyncio
    async def test_capacity_enforced(self):
        backlog = RedisBacklog(client=FakeRedis(), max_queued=1)
        dropped = Task(args=(2,), callback=lambda e, r: None)

        assert await backlog.enqueue(Task(args=(1,))) is True
        assert await backlog.enqueue(dropped) is False
        assert await backlog.size() == 1
        assert dropped.task_id not in backlog._sinks

    @pytest.mark.asyncio
    async def test_task_from_another_process(self):
        client = FakeRedis()
        await client.rpush("admitq:backlog", json.dumps({"task_id": "ext-1", "args": [5]}))
        backlog = RedisBacklog(client=client)

        task = await backlog.dequeue_next()
        assert task.task_id == "ext-1"
        assert task.args == (5,)
        assert task.callback is None

    @pytest.mark.asyncio
    async def test_undecodable_payload(self):
        client = FakeRedis()
        await client.rpush("admitq:backlog", b"\xff not json")
        backlog = RedisBacklog(client=client)

        with pytest.raises(BacklogError) as exc_info:
            await backlog.dequeue_next()
        assert exc_info.value.context.backlog == "redis"

    @pytest.mark.asyncio
    async def test_unserialisable_args(self):
        backlog = RedisBacklog(client=FakeRedis())
        with pytest.raises(BacklogError, match="JSON"):
            await backlog.enqueue(Task(args=(object(),)))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_queued", [None, 5])
    async def test_failed_push_forgets_sink(self, max_queued):
        client = FakeRedis()
        client.rpush = AsyncMock(side_effect=ConnectionError("down"))
        client.eval = AsyncMock(side_effect=ConnectionError("down"))
        backlog = RedisBacklog(client=client, max_queued=max_queued)

        with pytest.raises(ConnectionError):
            await backlog.enqueue(Task(args=(1,), callback=lambda e, r: None))
        assert backlog._sinks == {}

    @pytest.mark.asyncio
    async def test_clear_drops_sinks(self):
        client = FakeRedis()
        backlog = RedisBacklog(client=client)
        await backlog.enqueue(Task(args=(1,), callback=lambda e, r: None))
        await backlog.clear()

        assert await backlog.is_empty()
        assert backlog._sinks == {}
        assert "admitq:backlog" not in client.lists

    @pytest.mark.asyncio
    async def test_uses_async_client_calls(self):
        client = AsyncMock()
        client.llen.return_value = 3
        backlog = RedisBacklog(client=client, key="k")

        assert await backlog.size() == 3
        client.llen.assert_awaited_once_with("k")


class TestQueueWithRedisBacklog:
    @pytest.mark.asyncio
    async def test_overflow_round_trips_through_redis(self):
        seen = []

        def worker(n, done):
            seen.append(n)
            asyncio.get_running_loop().call_soon(done, None, n * n)

        queue = AdmissionQueue(
            worker,
            style=WorkerStyle.CALLBACK,
            backlog=RedisBacklog(client=FakeRedis()),
        )
        results = []
        for n in range(4):
            await queue.push(n, callback=lambda error, result: results.append(result))

        assert await queue.queued() == 3
        await asyncio.wait_for(queue.drained(), 1.0)

        assert seen == [0, 1, 2, 3]
        assert results == [0, 1, 4, 9]

    @pytest.mark.asyncio
    async def test_foreign_task_failure_goes_to_error_signal(self):
        client = FakeRedis()

        async def fail(n):
            raise ValueError(f"bad {n}")

        queue = AdmissionQueue(fail, backlog=RedisBacklog(client=client))
        errors = []
        queue.on("error", errors.append)

        gate = asyncio.Event()
        await queue.push(0, callback=lambda error, result: gate.set())
        await client.rpush("admitq:backlog", json.dumps({"task_id": "ext", "args": [7]}))

        await asyncio.wait_for(gate.wait(), 1.0)
        await asyncio.wait_for(queue.drained(), 1.0)
        assert [str(e) for e in errors] == ["bad 7"]
