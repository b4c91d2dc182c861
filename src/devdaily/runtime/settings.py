"""Environment settings.

Primitive values loaded from environment variables and ``.env`` files. These
decide where the YAML configuration lives and which environment it is
resolved for; everything else is read from ``config.yaml``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Environment and deployment
    environment: Literal["development", "production", "test"] = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )
    log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")
    config_path: Path = Field(default=Path("config.yaml"), validation_alias="CONFIG_PATH")

    # Infrastructure URLs
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
