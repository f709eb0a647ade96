"""
Configuration Settings
======================

Centralized configuration using Pydantic V2 Settings.

The connection string is read from ``DATABASE_URL`` and, for compatibility
with existing PostgreSQL setups, ``POSTGRES_URL``.
"""

import logging

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = Field(default="development")
    app_debug: bool = Field(default=False)
    database_url: str = Field(
        default="sqlite:///./data/querylab.db",
        validation_alias=AliasChoices("database_url", "postgres_url"),
    )
    sql_echo: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    page_size: int = Field(default=4, gt=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
