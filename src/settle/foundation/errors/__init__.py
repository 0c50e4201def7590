"""Unified error handling for settle.

- ErrorCode: Classification of rejection reasons
- CombinatorError and subclasses: AggregateFailure, CombinatorMisuseError, TaskRejected
- FailureInfo: Pydantic view of a rejection reason for logs and reports
"""

from .errors import (
    AggregateFailure,
    CombinatorError,
    CombinatorMisuseError,
    ErrorCode,
    FailureInfo,
    TaskRejected,
    classify_reason,
)
from .types import JsonDict, JsonPrimitive, JsonValue

__all__ = [
    # Errors
    "ErrorCode", "CombinatorError", "CombinatorMisuseError", "AggregateFailure", "TaskRejected",
    "FailureInfo", "classify_reason",
    # Type aliases
    "JsonDict", "JsonPrimitive", "JsonValue",
]
