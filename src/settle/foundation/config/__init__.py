"""Configuration management using pydantic-settings."""

from .settings import (
    CombinatorSettings,
    LoggingSettings,
    SettleSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "CombinatorSettings",
    "LoggingSettings",
    "SettleSettings",
    "clear_settings_cache",
    "get_settings",
]
