"""Foundation: errors and configuration shared by the runtime."""

from .config import SettleSettings, clear_settings_cache, get_settings
from .errors import (
    AggregateFailure,
    CombinatorError,
    CombinatorMisuseError,
    ErrorCode,
    FailureInfo,
    TaskRejected,
)

__all__ = [
    "SettleSettings", "clear_settings_cache", "get_settings",
    "AggregateFailure", "CombinatorError", "CombinatorMisuseError", "ErrorCode", "FailureInfo", "TaskRejected",
]
