"""Task - one unit of work waiting for, or holding, an admission slot.

A task is the argument tuple handed to the worker plus the sink that
receives its outcome. Tasks are immutable: the queue hands the same object
from caller to backlog to executor and drops it once the outcome is
delivered.

Tags:
    admitq, execution, task, model
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

CompletionSink = Callable[[BaseException | None, Any], Any]
"""Receives ``(error, result)`` exactly once per task."""


@dataclass(frozen=True)
class Task:
    """Arguments for one worker call and the sink for its outcome.

    Example:
        >>> task = Task(args=(1, 2), callback=lambda err, result: None)
        >>> task.to_dict()["args"]
        [1, 2]
    """

    args: tuple[Any, ...] = ()
    """Positional arguments passed to the worker"""

    callback: CompletionSink | None = field(default=None, compare=False)
    """Completion sink; ``None`` routes failures to the ``error`` signal"""

    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    """Stable identifier, survives a trip through a persisted backlog"""

    def to_dict(self) -> dict[str, Any]:
        """Serialize the persistable part (the sink is process-local)."""
        return {
            "task_id": self.task_id,
            "args": list(self.args),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], callback: CompletionSink | None = None) -> Task:
        return cls(
            args=tuple(data.get("args", ())),
            callback=callback,
            task_id=data.get("task_id") or uuid.uuid4().hex,
        )
