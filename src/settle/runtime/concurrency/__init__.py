"""Task aggregation combinators for async and threaded code.

Key Components:
    - Deferred: Exactly-once task handle, awaitable and thread-safe
    - CombinationContext: Per-call results buffer, counter and settled flag
    - Wait strategies: combine_all, combine_all_settled, combine_race, combine_any
    - Adapters: as_task for futures, coroutines and custom task types

Design Philosophy:
    - Callback-driven: combinators return a pending handle and never block
    - Exactly-once: an aggregate settles at most once, even across threads
    - No downward cancellation: abandoned inputs run to completion
    - Reasons are forwarded verbatim or folded into AggregateFailure

Example:
    >>> from settle.runtime.concurrency import combine_all, combine_race, deadline
    >>>
    >>> users = await combine_all([fetch_user(1), fetch_user(2)])
    >>> fastest = await combine_race([mirror_a(), mirror_b(), deadline(3.0)])
"""

from __future__ import annotations

# Task handles
from .task import (
    Deferred,
    Settleable,
    SettleCallback,
    SettledStatus,
    TaskLike,
    as_exception,
    as_task,
    as_tasks,
    deadline,
    rejected,
    resolved,
)

# Per-call state
from .context import CombinationContext

# Wait strategies
from .wait import (
    Settled,
    combine_all,
    combine_all_settled,
    combine_any,
    combine_race,
)

__all__ = [
    # Task handles
    "Deferred",
    "Settleable",
    "SettleCallback",
    "SettledStatus",
    "TaskLike",
    "as_exception",
    "as_task",
    "as_tasks",
    "deadline",
    "rejected",
    "resolved",
    # Context
    "CombinationContext",
    # Wait strategies
    "Settled",
    "combine_all",
    "combine_all_settled",
    "combine_any",
    "combine_race",
]
