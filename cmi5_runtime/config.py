"""
Configuration settings for the cmi5 runtime.

Uses Pydantic Settings for environment variable management with .env file support.
Launch parameters are never read from here; the host passes them explicitly.
"""
from __future__ import annotations

import sys
from functools import lru_cache

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables (CMI5_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CMI5_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # xAPI / LRS
    # ========================================
    xapi_version: str = Field(
        default="1.0.3",
        description="Value sent in the X-Experience-API-Version header",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for LRS and fetch URL requests",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="INFO",
        description="Minimum loguru level for setup_logging()",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """
    Replace loguru's default handler with a compact stderr sink.

    Args:
        level: Minimum level; defaults to Settings.log_level
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or get_settings().log_level).upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}",
    )
