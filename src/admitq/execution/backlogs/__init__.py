"""Backlogs - where tasks wait for an admission slot.

Implementations:
    MemoryBacklog  ─ in-process deque (default)
    RedisBacklog   ─ Redis list (requires the ``redis`` extra at connect time)
"""

from .memory import MemoryBacklog
from .protocol import Backlog
from .redis import RedisBacklog

__all__ = [
    "Backlog",
    "MemoryBacklog",
    "RedisBacklog",
]
