"""Observability for settle: structured logging."""

from .logging import (
    BoundLogger,
    CaptureRenderer,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    NoOpRenderer,
    configure_from_settings,
    configure_logging,
    get_logger,
    log_context,
    set_renderer,
)

__all__ = [
    "BoundLogger", "CaptureRenderer", "ConsoleRenderer", "JsonRenderer", "LogEntry", "LogRenderer",
    "NoOpRenderer", "configure_from_settings", "configure_logging", "get_logger", "log_context", "set_renderer",
]
