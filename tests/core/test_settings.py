"""Tests for QueueSettings (pydantic-settings)."""

import pytest
from pydantic import ValidationError

from admitq.core.settings import QueueSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "ADMITQ_CONCURRENCY",
        "ADMITQ_PACING_INTERVAL",
        "ADMITQ_TIMEOUT",
        "ADMITQ_MAX_QUEUED",
        "ADMITQ_BACKLOG",
        "ADMITQ_REDIS_URL",
        "ADMITQ_REDIS_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_defaults(self):
        settings = QueueSettings()
        assert settings.concurrency == 1
        assert settings.pacing_interval == 0.0
        assert settings.timeout == 0.0
        assert settings.max_queued is None
        assert settings.backlog == "memory"
        assert settings.redis_key == "admitq:backlog"


class TestEnvironment:
    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("ADMITQ_CONCURRENCY", "4")
        monkeypatch.setenv("ADMITQ_PACING_INTERVAL", "0.25")
        monkeypatch.setenv("ADMITQ_MAX_QUEUED", "100")
        monkeypatch.setenv("ADMITQ_BACKLOG", "redis")

        settings = QueueSettings()
        assert settings.concurrency == 4
        assert settings.pacing_interval == 0.25
        assert settings.max_queued == 100
        assert settings.backlog == "redis"

    def test_reads_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text("ADMITQ_TIMEOUT=3.5\n")
        assert QueueSettings().timeout == 3.5


class TestValidation:
    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            QueueSettings(concurrency=0)

    def test_unknown_backlog(self, monkeypatch):
        monkeypatch.setenv("ADMITQ_BACKLOG", "sqlite")
        with pytest.raises(ValidationError):
            QueueSettings()


class TestFields:
    def test_only_queue_options(self, monkeypatch):
        monkeypatch.setenv("ADMITQ_LOG_LEVEL", "DEBUG")
        settings = QueueSettings()
        assert set(QueueSettings.model_fields) == {
            "concurrency",
            "pacing_interval",
            "timeout",
            "max_queued",
            "backlog",
            "redis_url",
            "redis_key",
        }
        assert not hasattr(settings, "log_level")
