"""Task handles that settle exactly once.

A Deferred is the handle every combinator returns: created pending, settled
once to fulfilled(value) or rejected(reason), and observable through
on_settle(). Anything with a callable on_settle() is accepted as an input
task; asyncio futures, concurrent.futures futures and coroutines are adapted
with as_task().

Key Features:
    - Exactly-once settlement: later settle() calls are ignored
    - Thread-safe: may be settled from any thread
    - Late observers: on_settle() on a settled handle fires immediately
    - Awaitable from asyncio, blockable from worker threads via wait()

Example:
    >>> d = Deferred[int]()
    >>> d.on_settle(lambda status, payload: print(status, payload))
    >>> d.fulfill(42)
    fulfilled 42
    >>> d.reject(ValueError("late"))  # no-op, already settled
    False
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import threading
from collections.abc import Awaitable, Generator, Iterable
from enum import StrEnum
from typing import Any, Callable, Generic, Protocol, TypeVar, Union, cast, runtime_checkable

from settle.foundation.errors import CombinatorMisuseError, TaskRejected
from settle.runtime.observability.logging import get_logger

T = TypeVar("T")
U = TypeVar("U")

log = get_logger("settle.task")


class SettledStatus(StrEnum):
    """Task lifecycle states."""
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


SettleCallback = Callable[[SettledStatus, object], None]


@runtime_checkable
class Settleable(Protocol):
    """Anything that reports its single settlement to registered callbacks."""

    def on_settle(self, callback: SettleCallback) -> None: ...


# Inputs accepted by the combinators
TaskLike = Union[Settleable, Awaitable[T], concurrent.futures.Future[T]]


def as_exception(reason: object) -> BaseException:
    """Exception to raise for a rejection reason (wraps non-exception reasons)."""
    return reason if isinstance(reason, BaseException) else TaskRejected(reason)


class Deferred(Generic[T]):
    """Pending handle settled once by its producer.

    Attributes:
        name: Optional name for debugging
    """

    __slots__ = ("name", "_lock", "_status", "_payload", "_callbacks", "_done")

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._status = SettledStatus.PENDING
        self._payload: object = None
        self._callbacks: list[SettleCallback] = []
        self._done = threading.Event()

    # ─────────────────────────────────────────────────────────────────────
    # Producer side
    # ─────────────────────────────────────────────────────────────────────

    def settle(self, status: SettledStatus, payload: object) -> bool:
        """Settle once with status and payload.

        Returns:
            True if this call settled the handle, False if it was already settled

        Raises:
            ValueError: If status is PENDING
        """
        if status is SettledStatus.PENDING:
            raise ValueError("cannot settle to pending")
        with self._lock:
            if self._status is not SettledStatus.PENDING:
                ignored = True
            else:
                ignored = False
                self._status, self._payload = status, payload
                callbacks, self._callbacks = self._callbacks, []
        if ignored:
            log.debug("settle ignored, already settled", task=self.name, status=str(status))
            return False
        self._done.set()
        for callback in callbacks:
            self._fire(callback, status, payload)
        return True

    def fulfill(self, value: T) -> bool:
        return self.settle(SettledStatus.FULFILLED, value)

    def reject(self, reason: object) -> bool:
        return self.settle(SettledStatus.REJECTED, reason)

    # ─────────────────────────────────────────────────────────────────────
    # Observer side
    # ─────────────────────────────────────────────────────────────────────

    def on_settle(self, callback: SettleCallback) -> None:
        """Register callback(status, payload); fires immediately if already settled."""
        with self._lock:
            if self._status is SettledStatus.PENDING:
                self._callbacks.append(callback)
                return
            status, payload = self._status, self._payload
        self._fire(callback, status, payload)

    def _discard(self, callback: SettleCallback) -> None:
        """Drop a callback that has not fired yet."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _fire(self, callback: SettleCallback, status: SettledStatus, payload: object) -> None:
        # One failing observer must not starve the others.
        try:
            callback(status, payload)
        except Exception:
            log.exception("settle callback failed", task=self.name, callback=getattr(callback, "__qualname__", repr(callback)))

    @property
    def status(self) -> SettledStatus:
        return self._status

    @property
    def is_pending(self) -> bool:
        return self._status is SettledStatus.PENDING

    @property
    def is_fulfilled(self) -> bool:
        return self._status is SettledStatus.FULFILLED

    @property
    def is_rejected(self) -> bool:
        return self._status is SettledStatus.REJECTED

    @property
    def value(self) -> T | None:
        """Fulfilled value, or None."""
        return cast(T, self._payload) if self.is_fulfilled else None

    @property
    def reason(self) -> object | None:
        """Rejection reason, or None."""
        return self._payload if self.is_rejected else None

    def result(self) -> T:
        """Get the fulfilled value without waiting.

        Raises:
            RuntimeError: If still pending
            BaseException: The rejection reason (or TaskRejected wrapping it)
        """
        match self._status:
            case SettledStatus.PENDING:
                raise RuntimeError("Deferred is still pending")
            case SettledStatus.REJECTED:
                raise as_exception(self._payload)
        return cast(T, self._payload)

    def wait(self, timeout: float | None = None) -> T:
        """Block the calling thread until settled, then return result().

        For callers on worker threads; never use it on an event loop thread.

        Raises:
            TimeoutError: If timeout expires first
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"{self!r} did not settle within {timeout}s")
        return self.result()

    def __await__(self) -> Generator[Any, None, T]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        def transfer(status: SettledStatus, payload: object) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_copy_outcome, future, status, payload)

        def forget(f: asyncio.Future[T]) -> None:
            if f.cancelled():
                self._discard(transfer)

        self.on_settle(transfer)
        future.add_done_callback(forget)
        return (yield from future.__await__())

    def then(
        self,
        on_fulfilled: Callable[[T], U] | None = None,
        on_rejected: Callable[[object], U] | None = None,
    ) -> Deferred[U]:
        """Derive a handle from this one's outcome.

        A missing handler passes the outcome through unchanged. A handler
        returning a Settleable is followed; a handler raising rejects the
        derived handle with that exception.

        Example:
            >>> combine_all(tasks).then(sum, lambda reason: 0)
        """
        derived: Deferred[U] = Deferred(name=f"{self.name}.then" if self.name else None)

        def react(status: SettledStatus, payload: object) -> None:
            handler = on_fulfilled if status is SettledStatus.FULFILLED else on_rejected
            if handler is None:
                derived.settle(status, payload)
                return
            try:
                outcome = handler(payload)  # type: ignore[arg-type]
            except Exception as e:
                derived.reject(e)
                return
            if _is_settleable(outcome):
                cast(Settleable, outcome).on_settle(derived.settle)
            else:
                derived.fulfill(outcome)

        self.on_settle(react)
        return derived

    def __repr__(self) -> str:
        name = f" {self.name!r}" if self.name else ""
        match self._status:
            case SettledStatus.PENDING: return f"<Deferred{name} pending>"
            case SettledStatus.FULFILLED: return f"<Deferred{name} fulfilled value={self._payload!r}>"
            case _: return f"<Deferred{name} rejected reason={self._payload!r}>"

    @classmethod
    def from_future(
        cls,
        future: asyncio.Future[T] | concurrent.futures.Future[T],
        *,
        name: str | None = None,
    ) -> Deferred[T]:
        """Bridge an asyncio or concurrent.futures future.

        A cancelled future rejects with its CancelledError.
        """
        deferred: Deferred[T] = cls(name=name)

        def done(f: asyncio.Future[T] | concurrent.futures.Future[T]) -> None:
            try:
                exc = f.exception()
            except (asyncio.CancelledError, concurrent.futures.CancelledError) as cancelled:
                deferred.reject(cancelled)
                return
            if exc is not None:
                deferred.reject(exc)
            else:
                deferred.fulfill(f.result())

        future.add_done_callback(done)  # type: ignore[arg-type]
        return deferred


def _copy_outcome(future: asyncio.Future[T], status: SettledStatus, payload: object) -> None:
    if future.done():
        return
    if status is SettledStatus.FULFILLED:
        future.set_result(cast(T, payload))
    elif isinstance(payload, asyncio.CancelledError):
        future.cancel(*payload.args[:1])
    else:
        future.set_exception(as_exception(payload))


# ─────────────────────────────────────────────────────────────────────────────
# Construction helpers
# ─────────────────────────────────────────────────────────────────────────────


def resolved(value: T, *, name: str | None = None) -> Deferred[T]:
    """Handle already fulfilled with value."""
    d: Deferred[T] = Deferred(name=name)
    d.fulfill(value)
    return d


def rejected(reason: object, *, name: str | None = None) -> Deferred[object]:
    """Handle already rejected with reason."""
    d: Deferred[object] = Deferred(name=name)
    d.reject(reason)
    return d


def deadline(seconds: float, reason: object | None = None) -> Deferred[object]:
    """Handle that rejects after seconds; race it against other tasks for a timeout.

    Uses the running event loop if there is one, a daemon timer thread otherwise.

    Example:
        >>> value = await combine_race([fetch(), deadline(2.0)])
    """
    if seconds < 0:
        raise ValueError(f"deadline must be non-negative, got {seconds}")
    d: Deferred[object] = Deferred(name=f"deadline({seconds})")
    why = reason if reason is not None else TimeoutError(f"deadline of {seconds}s exceeded")
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(seconds, d.reject, args=(why,))
        timer.daemon = True
        timer.start()
    else:
        loop.call_later(seconds, d.reject, why)
    return d


def _is_settleable(obj: object) -> bool:
    return isinstance(obj, Settleable) and callable(getattr(obj, "on_settle", None))


def _check_task_like(obj: object, index: int) -> None:
    """Raise CombinatorMisuseError if obj cannot be adapted to a task."""
    if _is_settleable(obj) or isinstance(obj, (asyncio.Future, concurrent.futures.Future)):
        return
    if inspect.isawaitable(obj):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            raise CombinatorMisuseError(
                f"input #{index} is a {type(obj).__name__}; awaitables need a running event loop"
            ) from None
        return
    raise CombinatorMisuseError(
        f"input #{index} is not a task: expected on_settle(), a future or an awaitable, got {type(obj).__name__}"
    )


def as_task(obj: object, *, name: str | None = None) -> Settleable:
    """Adapt obj to something with on_settle().

    Raises:
        CombinatorMisuseError: If obj is not task-like
    """
    _check_task_like(obj, 0)
    if _is_settleable(obj):
        return cast(Settleable, obj)
    if isinstance(obj, (asyncio.Future, concurrent.futures.Future)):
        return Deferred.from_future(obj, name=name)
    return Deferred.from_future(asyncio.ensure_future(obj), name=name)  # type: ignore[arg-type]


def as_tasks(tasks: Iterable[object]) -> list[Settleable]:
    """Validate every input first, then adapt them all.

    Nothing is scheduled when any input is malformed.

    Raises:
        CombinatorMisuseError: If tasks is not iterable or holds a non-task
    """
    if isinstance(tasks, (str, bytes)):
        raise CombinatorMisuseError(f"expected an iterable of tasks, got {type(tasks).__name__}")
    try:
        items = list(tasks)
    except TypeError:
        raise CombinatorMisuseError(f"expected an iterable of tasks, got {type(tasks).__name__}") from None
    for i, item in enumerate(items):
        _check_task_like(item, i)
    return [as_task(item) for item in items]
