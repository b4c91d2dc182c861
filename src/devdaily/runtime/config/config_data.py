"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

import os
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field, computed_field, field_validator
from sqlalchemy.engine import make_url

IsolationLevelName = Literal[
    "READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"
]


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="plain", description="Log format")
    file: str | None = Field(default="logs/devdaily.log", description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./devdaily.db",
        description="Database connection URL",
    )
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")
    password_env_var: str | None = Field(
        default=None,
        description="Environment variable name containing database password",
    )
    password_file: str | None = Field(
        default=None,
        description="Path to file containing database password",
    )

    @computed_field
    @property
    def password(self) -> str | None:
        """Resolve the database password.

        A password embedded in the URL wins. Otherwise the mounted secrets file
        named by ``password_file`` is read, then the environment variable named
        by ``password_env_var``.
        """
        url_obj = make_url(self.url)
        if url_obj.password:
            return url_obj.password

        if self.password_file:
            try:
                with open(self.password_file) as f:
                    return f.read().strip()
            except OSError as e:
                logger.error(
                    "Failed to read database password file {}: {}",
                    self.password_file,
                    e,
                )

        if self.password_env_var:
            return os.getenv(self.password_env_var)

        return None

    @computed_field
    @property
    def connection_string(self) -> str:
        """Database URL with the resolved password filled in."""
        base_url = make_url(self.url)
        if base_url.password or not self.password:
            return base_url.render_as_string(hide_password=False)
        return base_url.set(password=self.password).render_as_string(
            hide_password=False
        )


class TransactionConfig(BaseModel):
    """Transaction runner defaults."""

    max_retries: int = Field(
        default=3, ge=0, description="Retries after the first attempt on transient errors"
    )
    retry_delay_ms: int = Field(
        default=100, ge=0, description="Base backoff delay, doubled per retry"
    )
    default_isolation: IsolationLevelName | None = Field(
        default="READ COMMITTED",
        description="Isolation level applied to root transactions (None keeps the driver default)",
    )
    lock_timeout: int = Field(
        default=30, ge=0, description="Lock wait timeout in seconds (0 disables)"
    )
    log_transactions: bool = Field(
        default=True, description="Log start/commit/rollback/retry events"
    )
    deadlock_retry: bool = Field(
        default=True, description="Retry units of work on transient store errors"
    )
    enable_savepoints: bool = Field(
        default=True, description="Emulate nested transactions with savepoints"
    )
    retryable_error_codes: list[int | str] = Field(
        default_factory=lambda: [1213, 1205, 3572, "40001", "40P01", "55P03"],
        description="Driver error codes treated as deadlock/lock-timeout signals",
    )
    batch_chunk_size: int = Field(
        default=100, gt=0, description="Default chunk size for batch execution"
    )


class CatalogConfig(BaseModel):
    """Catalog maintenance rules."""

    price_check_interval_days: int = Field(
        default=7, description="Days before a product price needs re-checking"
    )
    link_check_interval_days: int = Field(
        default=14, description="Days before affiliate links need re-validation"
    )


class AppConfig(BaseModel):
    """Application configuration model."""

    name: str = Field(default="DevDaily", description="Application name")
    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    transaction: TransactionConfig = Field(
        default_factory=TransactionConfig, description="Transaction runner configuration"
    )
    catalog: CatalogConfig = Field(
        default_factory=CatalogConfig, description="Catalog maintenance configuration"
    )
