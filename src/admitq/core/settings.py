"""Environment-driven settings for admitq queues.

``QueueSettings`` reads ``ADMITQ_*`` environment variables (and a local
``.env`` file) so a deployment can tune concurrency, pacing and timeouts
without code changes.

Fields
──────
concurrency      : Maximum simultaneously admitted tasks (>= 1)
pacing_interval  : Minimum seconds between successive admissions (0 disables)
timeout          : Seconds before a running task is reported as timed out (0 disables)
max_queued       : Backlog capacity; unset means unbounded
backlog          : ``memory`` or ``redis``
redis_url        : Redis connection URL for the ``redis`` backlog
redis_key        : Redis list key holding queued tasks

Examples:
    >>> import os
    >>> os.environ["ADMITQ_CONCURRENCY"] = "4"
    >>> QueueSettings().concurrency
    4

Tags:
    settings, configuration, pydantic, environment, admitq
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueSettings(BaseSettings):
    """Queue options loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="ADMITQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Admission ────────────────────────────────────────────────
    concurrency: int = Field(default=1, ge=1)
    pacing_interval: float = Field(default=0.0, ge=0.0)
    timeout: float = Field(default=0.0, ge=0.0)
    max_queued: int | None = Field(default=None, ge=0)

    # ── Backlog ──────────────────────────────────────────────────
    backlog: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_key: str = "admitq:backlog"

