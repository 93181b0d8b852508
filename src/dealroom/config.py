"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by a ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and ``validate_settings()``,
a startup gate that refuses unsafe production configurations.

This module has no imports from the ``dealroom`` package so every other module
can depend on it.
"""

from __future__ import annotations

import sys
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``.

    ``SecretStr`` fields keep credentials out of logs and error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    service_name: str = "dealroom"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/dealroom.db")
    audit_db_path: Path = Path("data/audit.db")

    # -- Negotiation rules -----------------------------------------------------
    offer_expiry_hours: int = Field(default=48, gt=0)
    save_retry_attempts: int = Field(default=3, ge=1)

    # -- Pagination ------------------------------------------------------------
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # -- Error reporting (secrets) ---------------------------------------------
    sentry_dsn: SecretStr = SecretStr("")

    @model_validator(mode="after")
    def page_sizes_consistent(self) -> Settings:
        if self.default_page_size > self.max_page_size:
            msg = "default_page_size must not exceed max_page_size"
            raise ValueError(msg)
        return self

    @property
    def offer_ttl(self) -> timedelta:
        return timedelta(hours=self.offer_expiry_hours)


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Structured errors only; the full exception may echo secret values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Check settings that are legal to parse but wrong to run with.

    In production the process exits when a problem is found; in development
    each problem is logged as a warning and startup continues.
    """
    errors: list[str] = []

    if str(settings.database_path) == ":memory:":
        errors.append("DATABASE_PATH is ':memory:'; negotiations will not survive a restart")

    if str(settings.audit_db_path) == ":memory:":
        errors.append("AUDIT_DB_PATH is ':memory:'; the audit trail will not survive a restart")

    if not settings.sentry_dsn.get_secret_value():
        errors.append("SENTRY_DSN is empty or not set")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("setting_invalid", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Invalid settings for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("setting_invalid_dev", detail=err)
