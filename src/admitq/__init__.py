"""
admitq - in-process admission control for asyncio work.

Runs at most N tasks at once, optionally spaces task starts, optionally
times tasks out, and parks overflow in a pluggable backlog.

    >>> from admitq import AdmissionQueue
    >>> queue = AdmissionQueue(fetch, concurrency=3, pacing_interval=0.1)
    >>> result = await queue.push("https://example.com")
"""

__version__ = "0.1.0"

from admitq.core.errors import (
    AdmitError,
    BacklogError,
    ConfigError,
    TaskError,
    TaskTimedOut,
    WorkerProtocolError,
)
from admitq.core.logging import configure_logging, get_logger
from admitq.core.settings import QueueSettings
from admitq.execution import (
    AdmissionQueue,
    AdmissionScheduler,
    Backlog,
    MemoryBacklog,
    RedisBacklog,
    Task,
    WorkerStyle,
)

__all__ = [
    "AdmissionQueue",
    "AdmissionScheduler",
    "AdmitError",
    "Backlog",
    "BacklogError",
    "ConfigError",
    "MemoryBacklog",
    "QueueSettings",
    "RedisBacklog",
    "Task",
    "TaskError",
    "TaskTimedOut",
    "WorkerProtocolError",
    "WorkerStyle",
    "configure_logging",
    "get_logger",
]
