"""AdmissionQueue - the caller-facing entry point.

``push`` accepts a task in one of two shapes and normalises it for the
scheduler:

- **callback**: the caller passes a completion callback, either as
  ``callback=`` or as one trailing positional argument beyond the worker's
  arity. ``push`` returns as soon as the task is admitted or queued, and the
  callback later receives ``(error, result)``.
- **awaited**: no callback. ``push`` waits for the task and returns its
  result, or raises its error.

The worker's calling style and arity are fixed at construction. Missing
trailing arguments are padded with ``None``.

Example::

    async def fetch(url, retries):
        ...

    queue = AdmissionQueue(fetch, concurrency=4, pacing_interval=0.25, timeout=10)
    body = await queue.push("https://example.com", 3)

    def on_done(error, result):
        ...

    await queue.push("https://example.org", callback=on_done)
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from admitq.core.errors import ConfigError, TaskError
from admitq.core.logging import get_logger
from admitq.core.settings import QueueSettings

from .backlogs import RedisBacklog
from .executor import WorkerStyle
from .scheduler import AdmissionScheduler
from .task import CompletionSink, Task

logger = get_logger(__name__)

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def worker_arity(worker: Callable[..., Any], style: WorkerStyle) -> int | None:
    """Number of task arguments ``worker`` takes.

    Coroutine workers count only parameters without a default, so missing
    optional arguments keep the worker's own defaults. Callback-style
    workers count every positional parameter before the trailing
    completion parameter, which must always land in the last position.
    Returns None when the worker takes ``*args`` or has no inspectable
    signature, and -1 for a callback-style worker with no parameters.
    """
    try:
        signature = inspect.signature(worker)
    except (TypeError, ValueError):
        return None

    params = []
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in _POSITIONAL:
            params.append(param)

    if WorkerStyle(style) is WorkerStyle.CALLBACK:
        return len(params) - 1
    return sum(1 for param in params if param.default is inspect.Parameter.empty)


class AdmissionQueue(AdmissionScheduler):
    """Concurrency-limited, optionally paced queue in front of one worker.

    Args:
        worker: Coroutine function, or callback-style function when
            ``style=WorkerStyle.CALLBACK``
        style: Worker calling convention (default coroutine)
        arity: Task argument count; read from the worker's signature when
            omitted
        **options: ``concurrency``, ``pacing_interval``, ``timeout``,
            ``max_queued``, ``backlog``
    """

    def __init__(
        self,
        worker: Callable[..., Any],
        *,
        style: WorkerStyle | str = WorkerStyle.COROUTINE,
        arity: int | None = None,
        **options: Any,
    ) -> None:
        if not callable(worker):
            raise ConfigError(f"worker must be callable, got {type(worker).__name__}").with_context(
                option="worker"
            )
        try:
            style = WorkerStyle(style)
        except ValueError as e:
            raise ConfigError(f"Unknown worker style {style!r}", cause=e).with_context(option="style") from e

        if arity is None:
            arity = worker_arity(worker, style)
        if arity is not None and arity < 0:
            raise ConfigError(
                "Callback-style worker must accept a completion callback"
            ).with_context(option="style")

        super().__init__(worker, style=style, **options)
        self.worker = worker
        self.style = style
        self.arity = arity

    @classmethod
    def from_settings(
        cls,
        worker: Callable[..., Any],
        settings: QueueSettings | None = None,
        **kwargs: Any,
    ) -> AdmissionQueue:
        """Build a queue from ``ADMITQ_*`` settings.

        A ``redis`` backlog setting creates a :class:`RedisBacklog` unless
        ``backlog=`` is passed explicitly.
        """
        settings = settings or QueueSettings()
        backlog = kwargs.pop("backlog", None)
        if backlog is None and settings.backlog == "redis":
            backlog = RedisBacklog(
                settings.redis_url,
                key=settings.redis_key,
                max_queued=settings.max_queued,
            )
        return cls(
            worker,
            concurrency=settings.concurrency,
            pacing_interval=settings.pacing_interval,
            timeout=settings.timeout,
            max_queued=settings.max_queued,
            backlog=backlog,
            **kwargs,
        )

    async def push(self, *args: Any, callback: CompletionSink | None = None) -> Any:
        """Submit a task.

        Returns:
            None in callback mode. In awaited mode, the task's result (or
            None if the backlog was full and the task was dropped).

        Raises:
            Exception: In awaited mode, whatever the task failed with,
                including :class:`~admitq.core.errors.TaskTimedOut`.
        """
        task_args, callback = self._normalize(args, callback)

        if callback is not None:
            await self.push_task(Task(args=task_args, callback=callback))
            return None

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def settle(error: Any = None, result: Any = None) -> None:
            if future.done():
                return
            if error is None:
                future.set_result(result)
                return
            if not isinstance(error, BaseException):
                error = TaskError(str(error), task_args=task_args)
            future.set_exception(error)

        stored = await self.push_task(Task(args=task_args, callback=settle))
        if not stored:
            return None
        return await future

    def _normalize(
        self, args: tuple[Any, ...], callback: CompletionSink | None
    ) -> tuple[tuple[Any, ...], CompletionSink | None]:
        if (
            callback is None
            and self.arity is not None
            and len(args) == self.arity + 1
            and callable(args[-1])
        ):
            callback = args[-1]
            args = args[:-1]

        if self.arity is not None and len(args) < self.arity:
            args = args + (None,) * (self.arity - len(args))
        return tuple(args), callback
