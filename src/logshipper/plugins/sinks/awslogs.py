"""
AWS CloudWatch Logs output.

Accepts bulks of records, packs them into per-stream batches and delivers
each stream's batches in order, with independent streams in parallel. Failed
batches are reported (diagnostics, metrics, optional stderr fallback) without
holding up other streams.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ...core import diagnostics
from ...core.batcher import (
    DEFAULT_MAX_BATCH_EVENTS,
    DEFAULT_MAX_BATCH_SIZE_BYTES,
    DEFAULT_PER_EVENT_OVERHEAD_BYTES,
    Batch,
    Batcher,
    DestinationKey,
)
from ...core.concurrency import run_per_key
from ...core.delivery import DEFAULT_MAX_RETRIES, DeliveryEngine, DeliveryResult
from ...core.errors import DeliveryFailedError, NetworkError, ShipmentError
from ...core.ports import LogServiceClient
from ...core.rate import RateGovernor
from ...core.record import Record
from ...core.retry import RetryConfig
from ...core.settings import Settings
from ...core.state import SequenceTokenStore
from ...metrics.metrics import MetricsCollector
from ..utils import parse_plugin_config
from .cloudwatch import CloudWatchLogsClient, create_logs_client
from .fallback import write_batch_to_stream

__all__ = ["AwsLogsSink", "AwsLogsSinkConfig", "ShipmentReport"]


class AwsLogsSinkConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    log_group_name: str = Field(min_length=1)
    log_stream_name: str = Field(min_length=1)
    message_template: str = ""
    max_batch_size_bytes: int = Field(default=DEFAULT_MAX_BATCH_SIZE_BYTES, ge=1)
    per_event_overhead_bytes: int = Field(
        default=DEFAULT_PER_EVENT_OVERHEAD_BYTES, ge=0
    )
    max_batch_events: int = Field(default=DEFAULT_MAX_BATCH_EVENTS, ge=1)
    min_delivery_interval_seconds: float = Field(default=0.2, ge=0.0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    max_elapsed_seconds: float | None = Field(default=None, gt=0.0)
    backoff_base_seconds: float = Field(default=0.5, ge=0.0)
    backoff_max_seconds: float = Field(default=30.0, ge=0.0)
    max_concurrency: int = Field(default=4, ge=1)
    fallback_to_stderr: bool = False
    raise_on_failure: bool = False
    region: str | None = None
    endpoint_url: str | None = None
    profile_name: str | None = None
    transport_retries: int = Field(default=3, ge=1)

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> AwsLogsSinkConfig:
        s = settings or Settings()
        values: dict[str, Any] = {
            **s.destination.model_dump(),
            **s.batching.model_dump(),
            **s.delivery.model_dump(),
            **s.aws.model_dump(),
        }
        values.update(overrides)
        return cls.model_validate(values)


@dataclass
class ShipmentReport:
    delivered: list[DeliveryResult] = field(default_factory=list)
    failed: list[DeliveryFailedError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def events_delivered(self) -> int:
        return sum(r.event_count for r in self.delivered)

    @property
    def events_failed(self) -> int:
        return sum(f.event_count for f in self.failed)


_KeyOutcome = tuple[list[DeliveryResult], list[DeliveryFailedError]]


class AwsLogsSink:
    """Ships record bulks to CloudWatch Logs."""

    name = "awslogs"

    def __init__(
        self,
        config: AwsLogsSinkConfig | dict | None = None,
        *,
        client: LogServiceClient | None = None,
        store: SequenceTokenStore | None = None,
        governor: RateGovernor | None = None,
        metrics: MetricsCollector | None = None,
        **kwargs: Any,
    ) -> None:
        cfg = parse_plugin_config(AwsLogsSinkConfig, config, **kwargs)
        self._config = cfg
        self._client = client
        self._raw_client: Any = None
        self._store = store if store is not None else SequenceTokenStore()
        self._governor = governor or RateGovernor(
            cfg.min_delivery_interval_seconds,
            backoff_policy=RetryConfig(
                max_attempts=max(1, cfg.max_retries),
                base_delay=cfg.backoff_base_seconds,
                max_delay=cfg.backoff_max_seconds,
            ),
        )
        self._metrics = metrics
        self._batcher = Batcher(
            group_name_template=cfg.log_group_name,
            stream_name_template=cfg.log_stream_name,
            message_template=cfg.message_template,
            max_batch_size_bytes=cfg.max_batch_size_bytes,
            per_event_overhead_bytes=cfg.per_event_overhead_bytes,
            max_batch_events=cfg.max_batch_events,
        )
        self._engine: DeliveryEngine | None = None
        self._bulk_lock = asyncio.Lock()
        self._last_report: ShipmentReport | None = None
        self._last_error: str | None = None

    @property
    def config(self) -> AwsLogsSinkConfig:
        return self._config

    @property
    def store(self) -> SequenceTokenStore:
        return self._store

    async def start(self) -> None:
        if self._client is None:
            cfg = self._config
            self._raw_client = await asyncio.to_thread(
                create_logs_client,
                region=cfg.region,
                endpoint_url=cfg.endpoint_url,
                profile_name=cfg.profile_name,
            )
            self._client = CloudWatchLogsClient(
                self._raw_client,
                transport_retry=RetryConfig(
                    max_attempts=cfg.transport_retries,
                    base_delay=0.2,
                    max_delay=2.0,
                    retryable_exceptions=[NetworkError],
                ),
            )
        self._engine = DeliveryEngine(
            self._client,
            store=self._store,
            governor=self._governor,
            max_retries=self._config.max_retries,
            max_elapsed_seconds=self._config.max_elapsed_seconds,
        )

    async def stop(self) -> None:
        raw, self._raw_client = self._raw_client, None
        if raw is not None and hasattr(raw, "close"):
            await asyncio.to_thread(raw.close)
            self._client = None
        self._engine = None

    async def write(self, entry: Mapping[str, Any]) -> None:
        await self.write_batch([entry])

    async def write_batch(
        self, records: Iterable[Record | Mapping[str, Any]]
    ) -> ShipmentReport:
        """Deliver one bulk; returns once every batch reached an outcome."""
        async with self._bulk_lock:
            if self._engine is None:
                await self.start()
            batches = self._batcher.form_batches(
                r if isinstance(r, Record) else Record.from_mapping(r)
                for r in records
            )
            per_key: dict[DestinationKey, list[Batch]] = {}
            for batch in batches:
                per_key.setdefault(batch.key, []).append(batch)

            outcomes = await run_per_key(
                per_key,
                self._deliver_in_order,
                max_concurrency=self._config.max_concurrency,
            )
            report = ShipmentReport()
            for delivered, failed in outcomes.values():
                report.delivered.extend(delivered)
                report.failed.extend(failed)
            self._last_report = report
            self._last_error = str(report.failed[-1]) if report.failed else None

        if report.failed and self._config.raise_on_failure:
            raise ShipmentError(report.failed)
        return report

    async def _deliver_in_order(
        self, key: DestinationKey, batches: Sequence[Batch]
    ) -> _KeyOutcome:
        assert self._engine is not None
        delivered: list[DeliveryResult] = []
        failed: list[DeliveryFailedError] = []
        for batch in batches:
            started = time.perf_counter()
            try:
                result = await self._engine.deliver(batch)
            except DeliveryFailedError as exc:
                failed.append(exc)
                await self._report_failure(batch, exc)
                continue
            delivered.append(result)
            if self._metrics is not None:
                for kind, count in result.recoveries.items():
                    for _ in range(count):
                        await self._metrics.record_recovery(kind)
                await self._metrics.record_batch_delivered(
                    result.event_count,
                    duration_seconds=time.perf_counter() - started,
                )
        return delivered, failed

    async def _report_failure(self, batch: Batch, exc: DeliveryFailedError) -> None:
        diagnostics.warn(
            "awslogs-sink",
            "batch delivery failed",
            log_group_name=batch.key.group_name,
            log_stream_name=batch.key.stream_name,
            event_count=len(batch),
            attempts=exc.attempts,
            error=str(exc),
        )
        if self._metrics is not None:
            await self._metrics.record_batch_failed(len(batch))
        if self._config.fallback_to_stderr:
            write_batch_to_stream(batch)

    async def health_check(self) -> bool:
        return self._engine is not None and self._last_error is None


PLUGIN_METADATA = {
    "name": "awslogs",
    "version": "1.0.0",
    "plugin_type": "sink",
    "entry_point": "logshipper.plugins.sinks.awslogs:AwsLogsSink",
    "description": "CloudWatch Logs sink with ordered per-stream batching.",
    "author": "logshipper",
    "dependencies": ["boto3>=1.26.0"],
}
