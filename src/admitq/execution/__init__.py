"""admitq execution - admission, pacing, timeouts and backlogs.

ARCHITECTURE
────────────
::

    AdmissionQueue.push(*args, callback=None)      (queue.py)
      │  normalise: trailing callback, pad missing args
      ▼
    AdmissionScheduler.push_task(task)             (scheduler.py)
      ├── admit ─────────────► TaskExecutor.run    (executor.py)
      │                          └── TaskDeadline  (timeout.py)
      └── overflow ──────────► Backlog.enqueue     (backlogs/)
      ▲
      └── slot release ◄──── completion + pacing timer

MODULE MAP
──────────
  1. task.py        ─ Task + CompletionSink
  2. timeout.py     ─ TaskDeadline
  3. executor.py    ─ TaskExecutor, TaskCompletion, WorkerStyle
  4. backlogs/      ─ Backlog protocol, MemoryBacklog, RedisBacklog
  5. scheduler.py   ─ AdmissionScheduler, QueueOptions
  6. queue.py       ─ AdmissionQueue
"""

from .backlogs import Backlog, MemoryBacklog, RedisBacklog
from .executor import TaskCompletion, TaskExecutor, WorkerStyle
from .queue import AdmissionQueue, worker_arity
from .scheduler import AdmissionScheduler, QueueOptions
from .task import CompletionSink, Task
from .timeout import TaskDeadline

__all__ = [
    "AdmissionQueue",
    "AdmissionScheduler",
    "Backlog",
    "CompletionSink",
    "MemoryBacklog",
    "QueueOptions",
    "RedisBacklog",
    "Task",
    "TaskCompletion",
    "TaskDeadline",
    "TaskExecutor",
    "WorkerStyle",
    "worker_arity",
]
