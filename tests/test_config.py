"""Unit tests for chesslink/config.py"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from chesslink.config import Settings


def test_defaults() -> None:
    settings = Settings.from_env({})
    assert settings.database_url == "sqlite:///chesslink.db"
    assert settings.identity_path == Path("~/.chesslink/identity.json")
    assert settings.log_level == "INFO"
    assert not settings.uses_memory_store


def test_from_environment() -> None:
    settings = Settings.from_env(
        {
            "CHESSLINK_DATABASE_URL": "memory",
            "CHESSLINK_IDENTITY_PATH": "/tmp/me.json",
            "CHESSLINK_LOG_LEVEL": "debug",
            "UNRELATED": "ignored",
        }
    )
    assert settings.uses_memory_store
    assert settings.identity_path == Path("/tmp/me.json")
    assert settings.log_level == "DEBUG"


def test_invalid_log_level() -> None:
    with pytest.raises(ValidationError):
        Settings.from_env({"CHESSLINK_LOG_LEVEL": "chatty"})
