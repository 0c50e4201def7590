"""Per-invocation state shared by the callbacks of one combinator call.

Every mutation of results, completed, seen and settled happens under one
lock. The aggregate handle itself is settled outside the lock, after the
settled flag has been claimed, so observers never run while it is held.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from .task import Deferred, SettledStatus

R = TypeVar("R")


class CombinationContext(Generic[R]):
    """Ordered results buffer, completion counter and one-shot settled flag.

    Owned by exactly one combinator call and captured by its per-index
    callbacks. Only the first notification from each input index counts, so
    a malformed task that reports twice cannot be counted twice.

    Attributes:
        size: Number of inputs (N)
        aggregate: Handle this context settles
    """

    __slots__ = ("size", "aggregate", "_lock", "_results", "_seen", "_completed", "_settled")

    def __init__(self, size: int, aggregate: Deferred[object]) -> None:
        self.size = size
        self.aggregate = aggregate
        self._lock = threading.Lock()
        self._results: list[R | None] = [None] * size
        self._seen = [False] * size
        self._completed = 0
        self._settled = False

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def settled(self) -> bool:
        return self._settled

    def results(self) -> list[R]:
        """Snapshot of the results buffer in input order."""
        with self._lock:
            return list(self._results)  # type: ignore[arg-type]

    def claim(self, index: int) -> bool:
        """Mark input index as observed without storing anything.

        Returns:
            False if the index already reported or the aggregate is settled
        """
        with self._lock:
            if self._settled or self._seen[index]:
                return False
            self._seen[index] = True
            return True

    def record(self, index: int, item: R) -> list[R] | None:
        """Store item at index and count it.

        Returns:
            The full results list when this was the last missing slot,
            otherwise None (also when the index already reported or the
            aggregate is settled)
        """
        with self._lock:
            if self._settled or self._seen[index]:
                return None
            self._seen[index] = True
            self._results[index] = item
            self._completed += 1
            if self._completed == self.size:
                return list(self._results)  # type: ignore[arg-type]
            return None

    def settle(self, status: SettledStatus, payload: object) -> bool:
        """Test-and-set the settled flag, then settle the aggregate.

        Returns:
            True for the single call that settled the aggregate
        """
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self.aggregate.settle(status, payload)
        return True

    def __repr__(self) -> str:
        return f"<CombinationContext size={self.size} completed={self._completed} settled={self._settled}>"
