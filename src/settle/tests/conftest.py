"""Shared fixtures: fresh settings and captured logs for every test."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from settle.foundation.config import clear_settings_cache
from settle.runtime.observability import CaptureRenderer, configure_logging, set_renderer


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Re-read SETTLE_* settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def captured_logs() -> Iterator[CaptureRenderer]:
    """Capture log entries at debug level so logging paths run in every test."""
    renderer = set_renderer(CaptureRenderer(), level="DEBUG")
    yield renderer
    configure_logging(format="none")
