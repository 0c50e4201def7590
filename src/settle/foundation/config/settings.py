"""Environment-based configuration using pydantic-settings.

Example:
    >>> from settle.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.combinator.empty_race
    'pending'
    >>> settings.logging.level
    'INFO'

    # Or with environment variables:
    # SETTLE_COMBINATOR_EMPTY_RACE=reject
    # SETTLE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"
    colors: bool | None = Field(default=None, description="Force console colors (None = auto-detect)")

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class CombinatorSettings(BaseSettings):
    """Behaviour switches for the combinators."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLE_COMBINATOR_",
        extra="ignore",
    )

    empty_race: Literal["pending", "reject"] = Field(
        default="pending",
        description="Outcome of racing zero tasks: stay pending forever, or reject with an empty AggregateFailure",
    )
    trace_settlements: bool = Field(default=False, description="Debug-log every input settlement")

    @computed_field
    @property
    def rejects_empty_race(self) -> bool:
        return self.empty_race == "reject"


class SettleSettings(BaseSettings):
    """Root settings, loaded from SETTLE_* environment variables or a .env file.

    Example environment variables:
        SETTLE_LOG_LEVEL=DEBUG
        SETTLE_LOG_FORMAT=json
        SETTLE_COMBINATOR_EMPTY_RACE=reject
        SETTLE_COMBINATOR_TRACE_SETTLEMENTS=true
    """

    model_config = SettingsConfigDict(
        env_prefix="SETTLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    combinator: CombinatorSettings = Field(default_factory=CombinatorSettings)


@lru_cache(maxsize=1)
def get_settings() -> SettleSettings:
    """Get the global settings instance (cached)."""
    return SettleSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
