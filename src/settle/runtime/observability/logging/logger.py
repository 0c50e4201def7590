"""Structured logging for combinator activity.

Every combinator invocation gets a logger bound to its name and input count;
settlement events are emitted at debug level so they cost nothing unless
SETTLE_LOG_LEVEL=DEBUG.

Quick Start:
    >>> from settle.runtime.observability import configure_logging, get_logger
    >>>
    >>> configure_logging(format="console", level="DEBUG")  # or "json"
    >>> log = get_logger("fan-out").bind_combinator("combine_all", 3)
    >>> log.debug("aggregate settled", status="fulfilled")

Renderer and level are process-wide so that callbacks running on worker
threads log the same way as the event loop thread.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import orjson

from settle.foundation.errors import JsonDict, JsonValue

if TYPE_CHECKING:
    from settle.foundation.config import LoggingSettings

_scoped: ContextVar[JsonDict] = ContextVar("settle_log_scope", default={})


@dataclass(slots=True, frozen=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def ts_iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def ts_clock(self) -> str:
        """HH:MM:SS.mmm"""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying key-value context. bind() returns a new logger; the original is unchanged.

    Example:
        >>> log = get_logger("jobs").bind_combinator("combine_race", 2)
        >>> log.debug("combination started")
        # => 10:30:45.120 [debug] combination started combinator="combine_race" logger="jobs" size=2
    """

    context: JsonDict = field(default_factory=dict)
    renderer: LogRenderer | None = None  # None = process-wide renderer
    level: int | None = None  # None = process-wide level

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return BoundLogger({**self.context, **kw}, self.renderer, self.level)

    def bind_combinator(self, name: str, size: int, **kw: JsonValue) -> BoundLogger:
        """Bind the context of one combinator invocation."""
        return self.bind(combinator=name, size=size, **kw)

    def is_enabled_for(self, level: int) -> bool:
        return level >= (_state.level if self.level is None else self.level)

    def log(self, level: int, event: str, **kw: JsonValue) -> None:
        if not self.is_enabled_for(level):
            return
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event, {**_scoped.get(), **self.context, **kw})
        (self.renderer or _state.renderer).render(entry)

    def debug(self, event: str, **kw: JsonValue) -> None:
        self.log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self.log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self.log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self.log(logging.ERROR, event, **kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Log at error level with the active traceback under exc_info."""
        self.log(logging.ERROR, event, exc_info=traceback.format_exc(), **kw)


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


_RESET, _DIM, _CYAN, _RED = "\033[0m", "\033[2m", "\033[36m", "\033[31m"
_LEVEL_STYLE = {"debug": _DIM, "info": "\033[32m", "warning": "\033[33m", "error": _RED}


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per entry: [time] [level] event key=value ... (keys sorted)."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None  # None = colors when output is a tty
    timestamps: bool = True

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = bool(getattr(self.output, "isatty", lambda: False)())

    def _paint(self, text: str, style: str) -> str:
        return f"{style}{text}{_RESET}" if self.colors else text

    def render(self, entry: LogEntry) -> None:
        ctx = dict(entry.context)
        trace = ctx.pop("exc_info", None)
        head = [self._paint(entry.ts_clock, _DIM)] if self.timestamps else []
        head.append(self._paint(f"[{entry.level}]", _LEVEL_STYLE.get(entry.level, _DIM)))
        head.append(entry.event)
        head += [f"{self._paint(k, _CYAN)}={_console_value(v)}" for k, v in sorted(ctx.items())]
        print(" ".join(head), file=self.output)
        if trace is not None:
            print(self._paint(str(trace), _RED), file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines via orjson; values orjson cannot encode are written as repr()."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        record = {"timestamp": entry.ts_iso, "level": entry.level, "event": entry.event, **entry.context}
        line = orjson.dumps(record, option=orjson.OPT_NON_STR_KEYS, default=repr)
        print(line.decode(), file=self.output)


@dataclass(slots=True)
class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        pass


@dataclass(slots=True)
class CaptureRenderer:
    """Keeps entries in memory; used by tests to assert on log output."""

    entries: list[LogEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def render(self, entry: LogEntry) -> None:
        with self._lock:
            self.entries.append(entry)

    def events(self) -> list[str]:
        with self._lock:
            return [e.event for e in self.entries]


def _console_value(v: object) -> str:
    match v:
        case str(): return f'"{v}"'
        case bool(): return str(v).lower()
        case _: return repr(v)


# ─────────────────────────────────────────────────────────────────────────────
# Process-wide configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class _LoggingState:
    renderer: LogRenderer = field(default_factory=ConsoleRenderer)
    level: int = logging.INFO


_state = _LoggingState()


def _parse_level(level: str) -> int:
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def set_renderer(renderer: LogRenderer, level: str | None = None) -> LogRenderer:
    """Install a renderer directly (e.g. CaptureRenderer in tests)."""
    _state.renderer = renderer
    if level is not None:
        _state.level = _parse_level(level)
    return renderer


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Install a renderer by name: "console" (human), "json" (machine) or "none"."""
    match format:
        case "console": renderer: LogRenderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
        case "json": renderer = JsonRenderer(output=output or sys.stdout)
        case "none": renderer = NoOpRenderer()
        case _: raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    return set_renderer(renderer, level)


def configure_from_settings(settings: LoggingSettings | None = None) -> LogRenderer:
    """Configure logging from SETTLE_LOG_* settings."""
    if settings is None:
        from settle.foundation.config import get_settings
        settings = get_settings().logging
    return configure_logging(format=settings.format, level=settings.level, colors=settings.colors)


def get_logger(name: str | None = None, **initial_context: JsonValue) -> BoundLogger:
    """Logger with optional initial context; name is added as 'logger'."""
    if name:
        initial_context["logger"] = name
    return BoundLogger(dict(initial_context))


@contextmanager
def log_context(**kw: JsonValue) -> Iterator[None]:
    """Add key-value pairs to every entry logged within the block (per task / thread)."""
    token = _scoped.set({**_scoped.get(), **kw})
    try:
        yield
    finally:
        _scoped.reset(token)
