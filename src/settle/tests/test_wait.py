"""Tests for the four wait strategies under asyncio.

Validates:
- Result ordering independent of completion order
- Fail-fast and first-settled timing
- Empty-input contracts
- Exactly-once settlement with malformed inputs
"""

from __future__ import annotations

import asyncio

import pytest

from settle import (
    AggregateFailure,
    CombinatorMisuseError,
    Deferred,
    Settled,
    SettledStatus,
    TaskRejected,
    combine_all,
    combine_all_settled,
    combine_any,
    combine_race,
    deadline,
    rejected,
    resolved,
)

from .fakes import DoubleFiringTask, NeverSettles, Recorder, fail_later, fulfil_after, later, reject_after


# ═════════════════════════════════════════════════════════════════════════════
# combine_all
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_all_keeps_input_order() -> None:
    """Task 1 finishing before task 0 does not reorder the values."""
    values = await combine_all([fulfil_after(0.02, "first"), fulfil_after(0.005, "second")])
    assert values == ["first", "second"]


@pytest.mark.asyncio
async def test_all_scenario_a() -> None:
    """30ms/10ms/20ms tasks yield [a, b, c] once the slowest is done."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    values = await combine_all([
        fulfil_after(0.03, "a"),
        fulfil_after(0.01, "b"),
        fulfil_after(0.02, "c"),
    ])
    assert values == ["a", "b", "c"]
    assert loop.time() - start >= 0.025


@pytest.mark.asyncio
async def test_all_fails_fast_with_exact_reason() -> None:
    """Scenario B: rejection at 10ms wins without waiting for the 30ms task."""
    slow = fulfil_after(0.03, "v")
    aggregate = combine_all([reject_after(0.01, "E1"), slow])

    with pytest.raises(TaskRejected) as exc_info:
        await aggregate

    assert exc_info.value.reason == "E1"
    assert aggregate.reason == "E1"
    assert slow.is_pending


@pytest.mark.asyncio
async def test_all_forwards_exception_identity() -> None:
    boom = ValueError("boom")
    with pytest.raises(ValueError) as exc_info:
        await combine_all([fulfil_after(0.01, 1), fail_later(0.001, boom)])
    assert exc_info.value is boom


@pytest.mark.asyncio
async def test_all_accepts_mixed_inputs() -> None:
    """Deferreds, coroutines and asyncio futures combine together."""
    loop = asyncio.get_running_loop()
    fut: asyncio.Future[int] = loop.create_future()
    loop.call_later(0.005, fut.set_result, 3)

    values = await combine_all([resolved(1), later(0.001, 2), fut, asyncio.ensure_future(later(0, 4))])
    assert values == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_all_already_settled_inputs() -> None:
    aggregate = combine_all([resolved("x"), resolved("y")])
    assert aggregate.is_fulfilled
    assert aggregate.value == ["x", "y"]


@pytest.mark.asyncio
async def test_all_late_results_are_discarded() -> None:
    slow = fulfil_after(0.02, "late")
    aggregate = combine_all([rejected("early"), slow])
    assert aggregate.is_rejected

    await slow
    assert aggregate.reason == "early"


def test_all_empty_fulfils_immediately() -> None:
    aggregate = combine_all([])
    assert aggregate.is_fulfilled
    assert aggregate.value == []


def test_all_never_settling_input_stays_pending() -> None:
    never = NeverSettles()
    aggregate = combine_all([resolved(1), never])
    assert never.registered == 1
    assert aggregate.is_pending


def test_all_rejection_beats_never_settling_input() -> None:
    aggregate = combine_all([NeverSettles(), rejected("stop")])
    assert aggregate.reason == "stop"


# ═════════════════════════════════════════════════════════════════════════════
# combine_all_settled
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_all_settled_reports_every_outcome_in_order() -> None:
    boom = RuntimeError("boom")
    records = await combine_all_settled([
        fulfil_after(0.02, "a"),
        reject_after(0.005, boom),
        fulfil_after(0.01, "c"),
    ])

    assert [r.status for r in records] == [
        SettledStatus.FULFILLED, SettledStatus.REJECTED, SettledStatus.FULFILLED,
    ]
    assert [r.index for r in records] == [0, 1, 2]
    assert records[0].value == "a"
    assert records[1].reason is boom
    assert records[1].value is None
    assert records[2].unwrap() == "c"


@pytest.mark.asyncio
async def test_all_settled_never_rejects() -> None:
    records = await combine_all_settled([rejected("x"), rejected(KeyError("y"))])
    assert len(records) == 2
    assert all(r.is_rejected for r in records)


def test_all_settled_empty() -> None:
    aggregate = combine_all_settled([])
    assert aggregate.is_fulfilled
    assert aggregate.value == []


def test_settled_record_helpers() -> None:
    ok: Settled[int] = Settled.of(0, SettledStatus.FULFILLED, 5)
    bad: Settled[int] = Settled.of(1, SettledStatus.REJECTED, "nope")

    assert ok.is_fulfilled and not ok.is_rejected
    assert ok.unwrap_or(0) == 5
    assert bad.unwrap_or(0) == 0
    with pytest.raises(TaskRejected):
        bad.unwrap()


# ═════════════════════════════════════════════════════════════════════════════
# combine_race
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_race_scenario_a() -> None:
    slowest = fulfil_after(0.03, "a")
    winner = await combine_race([slowest, fulfil_after(0.01, "b"), fulfil_after(0.02, "c")])
    assert winner == "b"
    assert slowest.is_pending


@pytest.mark.asyncio
async def test_race_fast_rejection_wins() -> None:
    with pytest.raises(TaskRejected) as exc_info:
        await combine_race([reject_after(0.005, "fast"), fulfil_after(0.03, "slow")])
    assert exc_info.value.reason == "fast"


@pytest.mark.asyncio
async def test_race_fast_fulfilment_wins() -> None:
    assert await combine_race([fulfil_after(0.005, "fast"), reject_after(0.03, "slow")]) == "fast"


@pytest.mark.asyncio
async def test_race_against_deadline() -> None:
    with pytest.raises(TimeoutError):
        await combine_race([fulfil_after(1.0, "too slow"), deadline(0.01)])


@pytest.mark.asyncio
async def test_race_empty_stays_pending() -> None:
    aggregate = combine_race([])
    await asyncio.sleep(0.01)
    assert aggregate.is_pending

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(asyncio.ensure_future(_await(aggregate)), timeout=0.01)


@pytest.mark.asyncio
async def test_polling_empty_race_does_not_accumulate_waiters() -> None:
    aggregate = combine_race([])
    baseline = len(aggregate._callbacks)

    for _ in range(20):
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(_await(aggregate), timeout=0.0001)
    await asyncio.sleep(0)

    assert len(aggregate._callbacks) == baseline


async def _await(d: Deferred[object]) -> object:
    return await d


# ═════════════════════════════════════════════════════════════════════════════
# combine_any
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_any_scenario_b() -> None:
    """A 10ms rejection is ignored; the 30ms fulfilment wins."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    value = await combine_any([reject_after(0.01, "E1"), fulfil_after(0.03, "v")])
    assert value == "v"
    assert loop.time() - start >= 0.025


@pytest.mark.asyncio
async def test_any_first_value_wins_among_rejections() -> None:
    value = await combine_any([
        reject_after(0.001, "r0"),
        fulfil_after(0.02, "slow"),
        reject_after(0.002, "r2"),
        fulfil_after(0.005, "fast"),
        reject_after(0.03, "r4"),
    ])
    assert value == "fast"


@pytest.mark.asyncio
async def test_any_total_failure_aggregates_reasons_in_input_order() -> None:
    e0, e2 = ValueError("e0"), KeyError("e2")
    with pytest.raises(AggregateFailure) as exc_info:
        await combine_any([
            reject_after(0.02, e0),
            reject_after(0.001, "e1"),
            reject_after(0.01, e2),
        ])

    failure = exc_info.value
    assert len(failure) == 3
    assert failure.reasons == (e0, "e1", e2)


def test_any_empty_rejects_with_zero_reasons() -> None:
    aggregate = combine_any([])
    assert aggregate.is_rejected
    assert isinstance(aggregate.reason, AggregateFailure)
    assert aggregate.reason.reasons == ()


def test_any_failure_is_distinct_from_propagated_reason() -> None:
    propagated = combine_all([rejected(ValueError("one"))]).reason
    aggregated = combine_any([rejected(ValueError("one"))]).reason

    assert not isinstance(propagated, AggregateFailure)
    assert isinstance(aggregated, AggregateFailure)


# ═════════════════════════════════════════════════════════════════════════════
# Exactly-once settlement
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("combinator", [combine_all, combine_race, combine_any])
def test_double_firing_task_cannot_change_outcome(combinator) -> None:  # type: ignore[no-untyped-def]
    task = DoubleFiringTask()
    aggregate = combinator([task])
    seen = Recorder()
    aggregate.on_settle(seen)

    task.fire(SettledStatus.FULFILLED, "ok")
    task.fire(SettledStatus.REJECTED, "late")

    assert aggregate.is_fulfilled
    assert seen.calls == [(SettledStatus.FULFILLED, ["ok"] if combinator is combine_all else "ok")]


def test_double_firing_task_is_counted_once() -> None:
    """A repeated notification must not complete the context early."""
    task, other = DoubleFiringTask(), Deferred[str]()
    aggregate = combine_all_settled([task, other])

    task.fire(SettledStatus.FULFILLED, "a")
    task.fire(SettledStatus.REJECTED, "b")
    assert aggregate.is_pending

    other.fulfill("c")
    assert [(r.status, r.value, r.reason) for r in aggregate.value] == [
        (SettledStatus.FULFILLED, "a", None),
        (SettledStatus.FULFILLED, "c", None),
    ]


def test_any_double_rejection_is_counted_once() -> None:
    task, other = DoubleFiringTask(), Deferred[str]()
    aggregate = combine_any([task, other])

    task.fire(SettledStatus.REJECTED, "x")
    task.fire(SettledStatus.REJECTED, "x again")
    assert aggregate.is_pending

    other.reject("y")
    assert aggregate.reason.reasons == ("x", "y")


# ═════════════════════════════════════════════════════════════════════════════
# Misuse
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("combinator", [combine_all, combine_all_settled, combine_race, combine_any])
def test_non_iterable_input_fails_synchronously(combinator) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(CombinatorMisuseError):
        combinator(42)


@pytest.mark.parametrize("combinator", [combine_all, combine_all_settled, combine_race, combine_any])
def test_non_task_element_fails_synchronously(combinator) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(CombinatorMisuseError, match="input #1"):
        combinator([resolved(1), object()])


def test_string_input_is_misuse() -> None:
    with pytest.raises(TypeError):
        combine_all("abc")


def test_malformed_input_registers_nothing() -> None:
    spy = NeverSettles()
    with pytest.raises(CombinatorMisuseError):
        combine_all([spy, "not a task"])
    assert spy.registered == 0


def test_coroutine_without_running_loop_is_misuse() -> None:
    coro = later(0, 1)
    try:
        with pytest.raises(CombinatorMisuseError, match="running event loop"):
            combine_race([coro])
    finally:
        coro.close()
