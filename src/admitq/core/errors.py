"""
Structured error types for admitq.

Task failures reported by a worker travel through the queue unchanged. The
types here cover what the queue itself produces: configuration errors at
construction time, timeouts generated by the executor, worker contract
violations, and backlog backend failures.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                        AdmitError                         │
        │          (category, context, cause, to_dict())            │
        ├──────────────────────────────────────────────────────────┤
        │  ConfigError         TaskError            BacklogError    │
        │  (CONFIG)            (TASK, task_args)    (STORAGE)       │
        │                           │                               │
        │                      TaskTimedOut                         │
        │                      (TIMEOUT, timeout)                   │
        │                                                           │
        │  WorkerProtocolError                                      │
        │  (PROTOCOL, never absorbed)                               │
        └──────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Catch WorkerProtocolError to keep a worker running
    ✅ DO: Fix the worker so it reports exactly once

    ❌ DON'T: Treat a dropped backlog task as an error
    ✅ DO: Size ``max_queued`` for the overflow you can tolerate

Examples:
    >>> err = TaskTimedOut(task_args=(3, 4), timeout=0.03)
    >>> err.task_args
    (3, 4)
    >>> str(err)
    'Task timed out'
    >>> err.to_dict()["category"]
    'TIMEOUT'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for classification and log routing."""

    CONFIG = "CONFIG"          # Invalid options or settings
    TASK = "TASK"              # Failure attached to a single task
    TIMEOUT = "TIMEOUT"        # Task exceeded its deadline
    PROTOCOL = "PROTOCOL"      # Worker broke the completion contract
    STORAGE = "STORAGE"        # Backlog backend failure
    INTERNAL = "INTERNAL"      # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        task_id: Identifier of the task involved, if any
        backlog: Backlog implementation name, if relevant
        option: Configuration option that failed validation
        metadata: Additional key-value pairs
    """

    task_id: str | None = None
    backlog: str | None = None
    option: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("task_id", "backlog", "option"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AdmitError(Exception):
    """Base exception for errors raised by admitq itself.

    Subclasses set ``default_category``. Every instance carries a
    :class:`ErrorContext` and an optional chained ``cause``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AdmitError:
        """Add context to this error (fluent API).

        Usage:
            raise BacklogError("LPOP failed").with_context(backlog="redis")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigError(AdmitError):
    """Invalid queue options or settings, raised at construction time."""

    default_category = ErrorCategory.CONFIG


class TaskError(AdmitError):
    """Failure attached to a task, carrying the task's original arguments."""

    default_category = ErrorCategory.TASK

    def __init__(self, message: str, *, task_args: tuple[Any, ...] = (), **kwargs: Any):
        super().__init__(message, **kwargs)
        self.task_args = tuple(task_args)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["task_args"] = [repr(a) for a in self.task_args]
        return result


class TaskTimedOut(TaskError, TimeoutError):
    """A task ran longer than the queue's ``timeout``.

    Inherits from built-in TimeoutError so generic timeout handling works.
    The underlying work is not cancelled; only the queue stops waiting.
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(
        self,
        message: str = "Task timed out",
        *,
        task_args: tuple[Any, ...] = (),
        timeout: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, task_args=task_args, **kwargs)
        self.timeout = timeout

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.timeout is not None:
            result["timeout"] = self.timeout
        return result


class WorkerProtocolError(AdmitError):
    """A worker invoked its completion callback more than once."""

    default_category = ErrorCategory.PROTOCOL

    def __init__(self, message: str = "Callback from worker should only be called once", **kwargs: Any):
        super().__init__(message, **kwargs)


class BacklogError(AdmitError):
    """Backlog backend failure (connection missing, corrupt payload)."""

    default_category = ErrorCategory.STORAGE
