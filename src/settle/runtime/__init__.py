"""Runtime: combinators, task handles and observability."""

from .concurrency import (
    CombinationContext,
    Deferred,
    Settleable,
    Settled,
    SettledStatus,
    as_task,
    combine_all,
    combine_all_settled,
    combine_any,
    combine_race,
    deadline,
    rejected,
    resolved,
)
from .observability import configure_logging, get_logger

__all__ = [
    "CombinationContext", "Deferred", "Settleable", "Settled", "SettledStatus", "as_task",
    "combine_all", "combine_all_settled", "combine_any", "combine_race", "deadline", "rejected", "resolved",
    "configure_logging", "get_logger",
]
