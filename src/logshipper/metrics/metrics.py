"""
Async metrics collection for the shipper.

Prometheus counters and histograms live in an isolated registry per
collector; in-memory counters are always tracked so tests can assert on them
when exporting is disabled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class ShipperMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    batches_delivered: int = 0
    events_delivered: int = 0
    batches_failed: int = 0
    events_dropped: int = 0
    recoveries: dict[str, int] = field(default_factory=dict)


class MetricsCollector:
    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = ShipperMetrics()

        self._c_batches: Any | None = None
        self._c_events: Any | None = None
        self._c_dropped: Any | None = None
        self._c_recoveries: Any | None = None
        self._h_delivery_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            self._registry = CollectorRegistry()
            self._c_batches = Counter(
                "logshipper_batches_total",
                "Batches that reached a terminal outcome",
                ["outcome"],
                registry=self._registry,
            )
            self._c_events = Counter(
                "logshipper_events_delivered_total",
                "Events accepted by the log service",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "logshipper_events_dropped_total",
                "Events in batches that failed delivery",
                registry=self._registry,
            )
            self._c_recoveries = Counter(
                "logshipper_recoveries_total",
                "Recoverable service failures absorbed by the delivery engine",
                ["kind"],
                registry=self._registry,
            )
            self._h_delivery_latency = Histogram(
                "logshipper_batch_delivery_seconds",
                "Time to deliver one batch including recovery",
                buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        return self._registry

    async def record_batch_delivered(
        self, event_count: int, *, duration_seconds: float | None = None
    ) -> None:
        async with self._lock:
            self._state.batches_delivered += 1
            self._state.events_delivered += event_count
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.labels(outcome="delivered").inc()
        if self._c_events is not None:
            self._c_events.inc(event_count)
        if duration_seconds is not None and self._h_delivery_latency is not None:
            self._h_delivery_latency.observe(duration_seconds)

    async def record_batch_failed(self, event_count: int) -> None:
        async with self._lock:
            self._state.batches_failed += 1
            self._state.events_dropped += event_count
        if not self._enabled:
            return
        if self._c_batches is not None:
            self._c_batches.labels(outcome="failed").inc()
        if self._c_dropped is not None:
            self._c_dropped.inc(event_count)

    async def record_recovery(self, kind: str) -> None:
        async with self._lock:
            self._state.recoveries[kind] = self._state.recoveries.get(kind, 0) + 1
        if self._enabled and self._c_recoveries is not None:
            self._c_recoveries.labels(kind=kind).inc()

    async def snapshot(self) -> ShipperMetrics:
        async with self._lock:
            return ShipperMetrics(
                batches_delivered=self._state.batches_delivered,
                events_delivered=self._state.events_delivered,
                batches_failed=self._state.batches_failed,
                events_dropped=self._state.events_dropped,
                recoveries=dict(self._state.recoveries),
            )
