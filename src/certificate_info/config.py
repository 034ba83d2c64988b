"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

Every setting has a default, so the service starts with no configuration
at all. Invalid values fail at startup, not on the first request.

Only AppSettings is a BaseSettings instance. FetchSettings is a plain
BaseModel populated via env_nested_delimiter="__", so the env var
FETCH__TIMEOUT_SECONDS maps to fetch.timeout_seconds.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class FetchSettings(BaseModel):
    """Outbound download settings for the /certificate/url and /profile/url routes."""

    timeout_seconds: float = Field(default=30, gt=0, description="Per-request timeout")
    max_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempts on timeouts and network errors"
    )


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    max_payload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    fetch: FetchSettings = Field(default_factory=lambda: FetchSettings())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Reject names the logging module does not know."""
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level
