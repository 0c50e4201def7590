"""Wait strategies that fold many tasks into one aggregate handle.

    - combine_all: Wait for all, fail fast on the first rejection
    - combine_all_settled: Wait for all, never reject, report every outcome
    - combine_race: First to settle wins, whatever its outcome
    - combine_any: First to fulfil wins; rejects only when every task rejected

Each call validates its inputs synchronously, registers one callback per
input up front and returns a pending Deferred straight away. Nothing blocks
or polls, and inputs left behind by an early settlement are never cancelled;
their late outcomes are observed and ignored.

Example:
    >>> values = await combine_all([fetch_user(1), fetch_user(2)])
    >>> outcomes = await combine_all_settled([risky_a(), risky_b()])
    >>> first = await combine_race([fetch_from_api(), deadline(2.0)])
    >>> any_ok = await combine_any([mirror_a(), mirror_b(), mirror_c()])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
from typing import Callable, Generic, TypeVar

from settle.foundation.config import get_settings
from settle.foundation.errors import AggregateFailure, FailureInfo
from settle.runtime.observability.logging import BoundLogger, get_logger

from .context import CombinationContext
from .task import Deferred, SettledStatus, Settleable, TaskLike, as_exception, as_tasks

T = TypeVar("T")

_log = get_logger("settle.combinators")

_OnSettle = Callable[[int, SettledStatus, object], None]


@dataclass(slots=True, frozen=True)
class Settled(Generic[T]):
    """Outcome of one input, as reported by combine_all_settled().

    Attributes:
        status: FULFILLED or REJECTED
        value: Result value if fulfilled
        reason: Rejection reason if rejected
        index: Position of the input this record belongs to
    """

    status: SettledStatus
    value: T | None = None
    reason: object | None = None
    index: int = 0

    @property
    def is_fulfilled(self) -> bool:
        return self.status is SettledStatus.FULFILLED

    @property
    def is_rejected(self) -> bool:
        return self.status is SettledStatus.REJECTED

    def unwrap(self) -> T:
        """Get value or raise stored reason."""
        if self.is_rejected:
            raise as_exception(self.reason)
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        """Get value or return default."""
        return self.value if self.is_fulfilled else default  # type: ignore[return-value]

    @classmethod
    def of(cls, index: int, status: SettledStatus, payload: object) -> Settled[T]:
        if status is SettledStatus.FULFILLED:
            return cls(status, value=payload, index=index)  # type: ignore[arg-type]
        return cls(status, reason=payload, index=index)


# ─────────────────────────────────────────────────────────────────────────────
# Shared plumbing
# ─────────────────────────────────────────────────────────────────────────────


def _begin(name: str, tasks: Iterable[TaskLike[T]]) -> tuple[list[Settleable], Deferred[object], BoundLogger]:
    inputs = as_tasks(tasks)
    aggregate: Deferred[object] = Deferred(name=name)
    log = _log.bind_combinator(name, len(inputs))
    if log.is_enabled_for(logging.DEBUG):
        log.debug("combination started")
        aggregate.on_settle(partial(_log_outcome, log))
    return inputs, aggregate, log


def _log_outcome(log: BoundLogger, status: SettledStatus, payload: object) -> None:
    if status is SettledStatus.FULFILLED:
        log.debug("aggregate settled", status=str(status))
    else:
        log.debug("aggregate settled", status=str(status), **FailureInfo.from_reason(payload).model_dump(mode="json"))


def _register(inputs: list[Settleable], handler: _OnSettle, log: BoundLogger) -> None:
    """Attach one callback per input, all up front."""
    if get_settings().combinator.trace_settlements:
        handler = partial(_traced, handler, log)
    for index, task in enumerate(inputs):
        task.on_settle(partial(handler, index))


def _traced(handler: _OnSettle, log: BoundLogger, index: int, status: SettledStatus, payload: object) -> None:
    log.debug("input settled", index=index, status=str(status))
    handler(index, status, payload)


# ─────────────────────────────────────────────────────────────────────────────
# All: wait for all, fail fast
# ─────────────────────────────────────────────────────────────────────────────


def combine_all(tasks: Iterable[TaskLike[T]]) -> Deferred[list[T]]:
    """Fulfil with every value in input order, or reject with the first reason.

    The first rejection (in time) settles the aggregate with that exact
    reason; slower inputs are not waited for. Zero inputs fulfil with [].

    Args:
        tasks: Ordered task handles, futures or awaitables

    Returns:
        Pending aggregate handle

    Raises:
        CombinatorMisuseError: If tasks is not an iterable of task-likes

    Example:
        >>> a, b = await combine_all([fetch("/a"), fetch("/b")])
    """
    inputs, aggregate, log = _begin("combine_all", tasks)
    if not inputs:
        aggregate.fulfill([])
        return aggregate  # type: ignore[return-value]

    ctx: CombinationContext[T] = CombinationContext(len(inputs), aggregate)

    def on_settle(index: int, status: SettledStatus, payload: object) -> None:
        if status is SettledStatus.FULFILLED:
            if (values := ctx.record(index, payload)) is not None:  # type: ignore[arg-type]
                ctx.settle(SettledStatus.FULFILLED, values)
        elif ctx.claim(index):
            ctx.settle(SettledStatus.REJECTED, payload)

    _register(inputs, on_settle, log)
    return aggregate  # type: ignore[return-value]


# ─────────────────────────────────────────────────────────────────────────────
# All settled: wait for all, never reject
# ─────────────────────────────────────────────────────────────────────────────


def combine_all_settled(tasks: Iterable[TaskLike[T]]) -> Deferred[list[Settled[T]]]:
    """Fulfil with one Settled record per input once every input settled.

    Never rejects. Records are index-aligned with the inputs regardless of
    completion order. Zero inputs fulfil with [].

    Example:
        >>> for r in await combine_all_settled([risky_a(), risky_b()]):
        ...     print(r.value if r.is_fulfilled else f"failed: {r.reason}")
    """
    inputs, aggregate, log = _begin("combine_all_settled", tasks)
    if not inputs:
        aggregate.fulfill([])
        return aggregate  # type: ignore[return-value]

    ctx: CombinationContext[Settled[T]] = CombinationContext(len(inputs), aggregate)

    def on_settle(index: int, status: SettledStatus, payload: object) -> None:
        if (records := ctx.record(index, Settled.of(index, status, payload))) is not None:
            ctx.settle(SettledStatus.FULFILLED, records)

    _register(inputs, on_settle, log)
    return aggregate  # type: ignore[return-value]


# ─────────────────────────────────────────────────────────────────────────────
# Race: first to settle wins
# ─────────────────────────────────────────────────────────────────────────────


def combine_race(tasks: Iterable[TaskLike[T]]) -> Deferred[T]:
    """Settle exactly like whichever input settles first.

    Zero inputs leave the aggregate pending forever, unless
    SETTLE_COMBINATOR_EMPTY_RACE=reject, in which case it rejects with an
    empty AggregateFailure.

    Example:
        >>> # Timeout by racing a deadline
        >>> value = await combine_race([slow_call(), deadline(5.0)])
    """
    inputs, aggregate, log = _begin("combine_race", tasks)
    if not inputs:
        if get_settings().combinator.rejects_empty_race:
            aggregate.reject(AggregateFailure((), "cannot race zero tasks"))
        else:
            log.debug("racing zero tasks, aggregate stays pending")
        return aggregate  # type: ignore[return-value]

    ctx: CombinationContext[object] = CombinationContext(len(inputs), aggregate)

    def on_settle(index: int, status: SettledStatus, payload: object) -> None:
        if ctx.claim(index):
            ctx.settle(status, payload)

    _register(inputs, on_settle, log)
    return aggregate  # type: ignore[return-value]


# ─────────────────────────────────────────────────────────────────────────────
# Any: first success wins
# ─────────────────────────────────────────────────────────────────────────────


def combine_any(tasks: Iterable[TaskLike[T]]) -> Deferred[T]:
    """Fulfil with the first value to arrive; reject only if every input rejects.

    Rejections before or after the first fulfilment are ignored. When all N
    inputs reject, the aggregate rejects with AggregateFailure holding the N
    reasons in input order. Zero inputs reject at once with an empty
    AggregateFailure.

    Example:
        >>> try:
        ...     body = await combine_any([mirror_a(), mirror_b()])
        ... except AggregateFailure as af:
        ...     print(af.render())
    """
    inputs, aggregate, log = _begin("combine_any", tasks)
    if not inputs:
        aggregate.reject(AggregateFailure(()))
        return aggregate  # type: ignore[return-value]

    # Counts rejections only; a fulfilment settles straight away.
    ctx: CombinationContext[object] = CombinationContext(len(inputs), aggregate)

    def on_settle(index: int, status: SettledStatus, payload: object) -> None:
        if status is SettledStatus.FULFILLED:
            if ctx.claim(index):
                ctx.settle(SettledStatus.FULFILLED, payload)
        elif (reasons := ctx.record(index, payload)) is not None:
            ctx.settle(SettledStatus.REJECTED, AggregateFailure(reasons))

    _register(inputs, on_settle, log)
    return aggregate  # type: ignore[return-value]
