"""Settle - aggregate many asynchronous tasks into one outcome.

Four combinators fold an ordered collection of tasks into a single pending
handle that settles exactly once:

    - combine_all: every value in input order, or the first rejection
    - combine_all_settled: one Settled record per input, never rejects
    - combine_race: the outcome of whichever input settles first
    - combine_any: the first value; AggregateFailure if every input rejects

Quick Start (asyncio):
    >>> import asyncio
    >>> from settle import combine_all, combine_any, AggregateFailure
    >>>
    >>> async def main():
    ...     a, b = await combine_all([fetch("/a"), fetch("/b")])
    ...     try:
    ...         body = await combine_any([mirror_1(), mirror_2()])
    ...     except AggregateFailure as af:
    ...         print(af.render())

Worker threads:
    >>> from concurrent.futures import ThreadPoolExecutor
    >>> with ThreadPoolExecutor() as pool:
    ...     futures = [pool.submit(work, n) for n in range(4)]
    ...     results = combine_all(futures).wait(timeout=10)

Custom task types only need on_settle(callback); callback(status, payload)
must fire once, immediately if the task has already settled.

Configuration comes from SETTLE_* environment variables (see
settle.foundation.config).
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    AggregateFailure,
    CombinatorError,
    CombinatorMisuseError,
    ErrorCode,
    FailureInfo,
    TaskRejected,
)

# Settings
from .foundation.config import SettleSettings, clear_settings_cache, get_settings

# Combinators and handles
from .runtime.concurrency import (
    CombinationContext,
    Deferred,
    Settleable,
    SettleCallback,
    Settled,
    SettledStatus,
    TaskLike,
    as_task,
    combine_all,
    combine_all_settled,
    combine_any,
    combine_race,
    deadline,
    rejected,
    resolved,
)

# Logging
from .runtime.observability import configure_from_settings, configure_logging, get_logger, log_context

__all__ = [
    "__version__",
    # Errors
    "AggregateFailure", "CombinatorError", "CombinatorMisuseError", "ErrorCode", "FailureInfo", "TaskRejected",
    # Settings
    "SettleSettings", "clear_settings_cache", "get_settings",
    # Combinators
    "combine_all", "combine_all_settled", "combine_any", "combine_race",
    # Handles
    "CombinationContext", "Deferred", "Settleable", "SettleCallback", "Settled", "SettledStatus", "TaskLike",
    "as_task", "deadline", "rejected", "resolved",
    # Logging
    "configure_from_settings", "configure_logging", "get_logger", "log_context",
]
