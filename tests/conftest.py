"""
Shared Test Fixtures
====================
Deterministic clocks and sleeps for timing-sensitive components.
"""

import logging
from typing import List

import pytest
import structlog


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records delays and optionally advances a clock."""

    def __init__(self, clock: FakeClock = None):
        self.delays: List[float] = []
        self.clock = clock

    def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))
        if self.clock is not None:
            self.clock.advance(seconds)


class AsyncRecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def async_recording_sleep() -> AsyncRecordingSleep:
    return AsyncRecordingSleep()


@pytest.fixture
def no_jitter_policy():
    """Policy with deterministic delays: 1s, 2s, 4s..."""
    from shopify_resilience.retry import RetryPolicy

    return RetryPolicy(jitter_enabled=False, adaptive_retry_enabled=False)


@pytest.fixture
def clocked_sleep(clock) -> RecordingSleep:
    """Recording sleep that moves ``clock`` forward by each delay."""
    return RecordingSleep(clock)


@pytest.fixture
def restore_logging():
    """Undo root logger and structlog changes made by ``setup_logging``."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
