"""
Global request spacing for the remote log service.

The service enforces an account-wide request rate, so a single governor is
shared by every destination. ``throttle()`` is awaited before each remote
call; ``backoff()`` registers a pause after the service reported throttling,
which every subsequent caller honours.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from .retry import RetryConfig


class RateGovernor:
    def __init__(
        self,
        min_interval_seconds: float,
        *,
        backoff_policy: RetryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        self._interval = float(min_interval_seconds)
        self._policy = backoff_policy or RetryConfig(
            max_attempts=10, base_delay=max(self._interval, 0.2), max_delay=10.0
        )
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_release: float | None = None
        self._hold_until = 0.0
        self.total_waited = 0.0

    @property
    def min_interval_seconds(self) -> float:
        return self._interval

    async def throttle(self) -> None:
        """Wait until the minimum spacing since the previous call has passed."""
        async with self._lock:
            # A backoff registered while sleeping extends the wait.
            while True:
                ready_at = self._hold_until
                if self._last_release is not None:
                    ready_at = max(ready_at, self._last_release + self._interval)
                wait = ready_at - self._clock()
                if wait <= 0:
                    break
                self.total_waited += wait
                await self._sleep(wait)
            self._last_release = self._clock()

    def backoff(self, consecutive_throttles: int) -> float:
        """Hold all callers for the policy delay; returns the delay applied."""
        delay = max(
            self._interval, self._policy.calculate_delay(consecutive_throttles)
        )
        self._hold_until = max(self._hold_until, self._clock() + delay)
        return delay
