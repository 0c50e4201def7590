"""Error taxonomy for task combinators.

Propagated reasons are forwarded untouched; everything raised by this package
derives from CombinatorError and carries an ErrorCode. FailureInfo gives a
serialisable view of any rejection reason for logging and reporting.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ErrorCode(StrEnum):
    """Machine-readable classification of a rejection."""
    REJECTED = "REJECTED"
    AGGREGATE_FAILURE = "AGGREGATE_FAILURE"
    MISUSE = "MISUSE"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"


def classify_reason(reason: object) -> ErrorCode:
    """Map a rejection reason to an error code."""
    match reason:
        case CombinatorError(): return reason.code
        case asyncio.CancelledError(): return ErrorCode.CANCELLED
        case TimeoutError(): return ErrorCode.TIMEOUT
        case _: return ErrorCode.REJECTED


class FailureInfo(BaseModel):
    """Structured description of one rejection reason.

    Attributes:
        code: Classification of the reason
        message: Human-readable text of the reason
        reason_type: Type name of the reason object
        index: Input position the reason came from, if known
    """

    model_config = ConfigDict(frozen=True)

    code: ErrorCode = ErrorCode.REJECTED
    message: str = ""
    reason_type: Annotated[str, Field(min_length=1)]
    index: Annotated[int, Field(ge=0)] | None = None
    is_exception: bool = False

    @computed_field
    @property
    def is_aggregate(self) -> bool:
        """Whether the reason was itself an aggregate failure."""
        return self.code == ErrorCode.AGGREGATE_FAILURE

    @classmethod
    def from_reason(cls, reason: object, *, index: int | None = None) -> Self:
        """Describe an arbitrary rejection reason."""
        return cls(
            code=classify_reason(reason),
            message=str(reason),
            reason_type=type(reason).__name__,
            index=index,
            is_exception=isinstance(reason, BaseException),
        )

    def render(self) -> str:
        at = f" [#{self.index}]" if self.index is not None else ""
        return f"{self.code}{at} {self.reason_type}: {self.message}"

    __str__ = render


class CombinatorError(Exception):
    """Base for errors produced by this package (never for forwarded reasons)."""

    code: ErrorCode = ErrorCode.REJECTED


class CombinatorMisuseError(CombinatorError, TypeError):
    """Malformed input to a combinator, raised synchronously at call time."""

    code = ErrorCode.MISUSE


class TaskRejected(CombinatorError):
    """Raised when awaiting a handle whose rejection reason is not an exception."""

    __slots__ = ("reason",)

    def __init__(self, reason: object) -> None:
        self.reason = reason
        super().__init__(f"task rejected: {reason!r}")

    def __reduce__(self) -> tuple[type[TaskRejected], tuple[object]]:
        return type(self), (self.reason,)


class AggregateFailure(CombinatorError):
    """Every competing task rejected. Reasons are kept in input order.

    Distinct from any propagated reason so callers can tell
    "one task failed" apart from "every task failed".

    Example:
        >>> try:
        ...     await combine_any([a, b])
        ... except AggregateFailure as af:
        ...     for reason in af.reasons:
        ...         print(reason)
    """

    code = ErrorCode.AGGREGATE_FAILURE

    __slots__ = ("reasons",)

    def __init__(self, reasons: Iterable[object] = (), message: str | None = None) -> None:
        self.reasons: tuple[object, ...] = tuple(reasons)
        super().__init__(message or f"all {len(self.reasons)} tasks were rejected")

    def __reduce__(self) -> tuple[type[AggregateFailure], tuple[tuple[object, ...], str]]:
        return type(self), (self.reasons, str(self))

    def __len__(self) -> int:
        return len(self.reasons)

    def infos(self) -> list[FailureInfo]:
        """One FailureInfo per reason, index-aligned."""
        return [FailureInfo.from_reason(r, index=i) for i, r in enumerate(self.reasons)]

    def render(self) -> str:
        lines = [str(self)]
        lines += [f"  {info}" for info in self.infos()]
        return "\n".join(lines)
