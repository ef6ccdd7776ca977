"""admitq core - errors, logging, settings and lifecycle signals.

Architecture::

    errors.py      Structured error hierarchy (AdmitError, TaskTimedOut, ...)
    logging.py     structlog configuration + get_logger
    settings.py    QueueSettings (pydantic-settings, ADMITQ_ prefix)
    signals.py     SignalEmitter for full / empty / drain / error
"""

from .errors import (
    AdmitError,
    BacklogError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    TaskError,
    TaskTimedOut,
    WorkerProtocolError,
)
from .logging import bind_context, configure_logging, get_logger, unbind_context
from .settings import QueueSettings
from .signals import SignalEmitter

__all__ = [
    "AdmitError",
    "BacklogError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "QueueSettings",
    "SignalEmitter",
    "TaskError",
    "TaskTimedOut",
    "WorkerProtocolError",
    "bind_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
