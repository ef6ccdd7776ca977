"""
Shared pytest fixtures for admitq tests.

This module provides:
- SignalRecorder for asserting on full / empty / drain / error emissions
- Worker factories for callback-style and coroutine workers
"""

from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
import sys
from typing import Any

import pytest

# Ensure admitq package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from admitq.execution.scheduler import SIGNALS


# =============================================================================
# Signal recording
# =============================================================================


class SignalRecorder:
    """Subscribes to every queue signal and records emissions in order."""

    def __init__(self, queue: Any) -> None:
        self.events: list[str] = []
        self.errors: list[BaseException] = []
        for name in SIGNALS:
            queue.on(name, partial(self._record, name))

    def _record(self, name: str, *args: Any) -> None:
        self.events.append(name)
        if name == "error":
            self.errors.extend(args)

    def count(self, name: str) -> int:
        return self.events.count(name)


@pytest.fixture
def recorder():
    """Factory: ``recorder(queue)`` returns a SignalRecorder."""
    return SignalRecorder


# =============================================================================
# Workers
# =============================================================================


class CallRecorder:
    """Collects (args, loop time) for every worker invocation."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.started_at: list[float] = []

    def record(self, *args: Any) -> None:
        self.calls.append(args)
        self.started_at.append(asyncio.get_running_loop().time())

    def __len__(self) -> int:
        return len(self.calls)


@pytest.fixture
def calls() -> CallRecorder:
    return CallRecorder()


@pytest.fixture
def next_tick_worker(calls: CallRecorder):
    """Callback-style worker that completes on the next loop iteration."""

    def worker(done):
        calls.record()
        asyncio.get_running_loop().call_soon(done)

    return worker


@pytest.fixture
def collect():
    """Factory for completion callbacks that append ``(error, result)`` to a list."""

    def factory(sink: list[tuple[Any, Any]]):
        def callback(error=None, result=None):
            sink.append((error, result))

        return callback

    return factory
