"""Client settings, read from CHESSLINK_* environment variables."""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Self

from pydantic import BaseModel, field_validator

ENV_PREFIX = "CHESSLINK_"

# database_url value that selects the in-process store instead of a database
MEMORY_STORE = "memory"


class Settings(BaseModel):
    database_url: str = "sqlite:///chesslink.db"
    identity_path: Path = Path("~/.chesslink/identity.json")
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def uses_memory_store(self) -> bool:
        return self.database_url == MEMORY_STORE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Unset variables keep their default."""
        environ = os.environ if environ is None else environ
        values = {
            name: environ[f"{ENV_PREFIX}{name.upper()}"]
            for name in cls.model_fields
            if f"{ENV_PREFIX}{name.upper()}" in environ
        }
        return cls(**values)
