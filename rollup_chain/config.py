"""
Service configuration from environment variables using Pydantic BaseSettings.

All configuration values are loaded from environment variables (or a
.env file) at startup. No hardcoded URLs or credentials.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        DATABASE_URL: PostgreSQL connection string (asyncpg).
        AGGREGATES_FILE: JSON file listing hypertables and their scopes.
        WITH_DATA: Populate views on creation instead of WITH NO DATA.
        LOG_LEVEL: Root log level name.
    """

    DATABASE_URL: str
    AGGREGATES_FILE: str = "aggregates.json"
    WITH_DATA: bool = False
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate LOG_LEVEL against the standard logging level names."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {v!r}")
        return level

    @property
    def log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.LOG_LEVEL]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Returns:
        Settings: Validated configuration from environment variables.
    """
    return Settings()
