"""
Retry and backoff policy.

``RetryConfig`` describes an exponential backoff schedule with a hard attempt
ceiling. The delivery engine uses it to space throttled attempts, and
``AsyncRetrier`` applies it to transport-level faults of the remote client.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol, TypeVar

from .errors import RetryExhaustedError

T = TypeVar("T")


def _default_retryable() -> list[type[BaseException]]:
    return [ConnectionError, TimeoutError, asyncio.TimeoutError]


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.1  # seconds
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.1  # fraction of the computed delay
    timeout_per_attempt: float | None = None
    retryable_exceptions: list[type[BaseException]] = field(
        default_factory=_default_retryable
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if self.base_delay <= 0:
            return 0.0
        delay = self.base_delay * (self.multiplier ** max(0, attempt - 1))
        delay = min(delay, self.max_delay)
        if self.jitter > 0:
            spread = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, tuple(self.retryable_exceptions))


@dataclass
class RetryStats:
    attempt_count: int = 0
    total_delay: float = 0.0
    last_exception: BaseException | None = None


class RetryCallable(Protocol):
    async def __call__(self, func: Callable[[], Awaitable[T]]) -> T:  # pragma: no cover
        ...


class AsyncRetrier:
    """Run an async callable with retries per ``RetryConfig``."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or RetryConfig()
        self.stats = RetryStats()
        self._sleep = sleep

    async def __call__(self, func: Callable[[], Awaitable[T]]) -> T:
        return await self.retry(func)

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        cfg = self.config
        self.stats = RetryStats()
        for attempt in range(1, cfg.max_attempts + 1):
            self.stats.attempt_count = attempt
            try:
                if cfg.timeout_per_attempt is not None:
                    return await asyncio.wait_for(
                        func(), timeout=cfg.timeout_per_attempt
                    )
                return await func()
            except Exception as exc:
                self.stats.last_exception = exc
                if not cfg.is_retryable(exc):
                    raise
                if attempt >= cfg.max_attempts:
                    break
                delay = cfg.calculate_delay(attempt)
                self.stats.total_delay += delay
                if delay > 0:
                    await self._sleep(delay)
        raise RetryExhaustedError(
            f"All {cfg.max_attempts} retry attempts exhausted",
            retry_stats=self.stats,
            cause=self.stats.last_exception,
        )


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    config: RetryConfig | None = None,
) -> T:
    return await AsyncRetrier(config).retry(func)
