"""
Pytest fixtures for logshipper tests.

Register with ``pytest_plugins = ("logshipper.testing.fixtures",)``.
"""

from __future__ import annotations

from typing import Any, Iterator

import pytest

from ..core import diagnostics
from ..core.rate import RateGovernor
from ..core.retry import RetryConfig
from ..core.state import SequenceTokenStore
from .fakes import FakeLogService


class FakeClock:
    """Monotonic clock advanced only by the paired ``sleep``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_log_service() -> FakeLogService:
    return FakeLogService()


@pytest.fixture
def token_store() -> SequenceTokenStore:
    return SequenceTokenStore()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def governed(fake_clock: FakeClock) -> RateGovernor:
    """Governor with a 1s interval running on the fake clock."""
    return RateGovernor(
        1.0,
        backoff_policy=RetryConfig(base_delay=0.5, max_delay=4.0, jitter=0.0),
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.fixture
def captured_diagnostics() -> Iterator[list[dict[str, Any]]]:
    captured: list[dict[str, Any]] = []
    diagnostics.set_enabled(True)
    diagnostics.set_writer_for_tests(captured.append)
    try:
        yield captured
    finally:
        diagnostics._reset_for_tests()
