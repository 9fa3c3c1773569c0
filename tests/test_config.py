"""Tests for configuration and logging setup."""

import logging
from pathlib import Path

from strata.core.config import Settings
from strata.core.logging import get_logger, setup_logging


def test_default_settings():
    """Settings load with defaults."""
    settings = Settings(
        _env_file=None,  # Don't load .env in tests
    )
    assert settings.data_dir == Path("data")
    assert settings.storage_backend == "memory"
    assert settings.agent_id == "default"
    assert settings.max_conversation_length == 50
    assert settings.max_episodes == 1000
    assert settings.llm_model == ""


def test_db_path():
    """Database path combines data_dir and db_name."""
    settings = Settings(
        data_dir=Path("/tmp/test"),
        db_name="test.db",
        _env_file=None,
    )
    assert settings.db_path == Path("/tmp/test/test.db")


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("STRATA_AGENT_ID", "env-agent")
    monkeypatch.setenv("STRATA_STORAGE_BACKEND", "sqlite")
    settings = Settings(_env_file=None)
    assert settings.agent_id == "env-agent"
    assert settings.storage_backend == "sqlite"


def test_get_logger_namespace():
    assert get_logger("memory.episodic").name == "strata.memory.episodic"


def test_setup_logging_replaces_handlers(tmp_path: Path):
    """Repeated setup does not stack handlers."""
    log_file = tmp_path / "logs" / "strata.log"
    logger = setup_logging("debug", log_file)
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logger = setup_logging(logging.WARNING)
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1

    get_logger("test").warning("hello")
    assert log_file.exists()
