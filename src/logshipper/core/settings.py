"""
Configuration models for logshipper using Pydantic v2 Settings.

Every field can be provided through the environment with the ``LOGSHIPPER_``
prefix and ``__`` as the nesting delimiter, for example
``LOGSHIPPER_DESTINATION__LOG_GROUP_NAME=/app/%{env}``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

from .batcher import (
    DEFAULT_MAX_BATCH_EVENTS,
    DEFAULT_MAX_BATCH_SIZE_BYTES,
    DEFAULT_PER_EVENT_OVERHEAD_BYTES,
)
from .delivery import DEFAULT_MAX_RETRIES


class CoreSettings(BaseModel):
    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit structured WARN/DEBUG diagnostics to stderr",
    )
    enable_metrics: bool = Field(
        default=False, description="Enable Prometheus-compatible metrics"
    )


class DestinationSettings(BaseModel):
    """Where records go. Names accept ``%{field}`` references."""

    log_group_name: str = Field(
        default="logshipper", description="Log group name template"
    )
    log_stream_name: str = Field(
        default="default", description="Log stream name template"
    )
    message_template: str = Field(
        default="",
        description="Message body template; empty ships the record as sorted JSON",
    )

    @field_validator("log_group_name", "log_stream_name")
    @classmethod
    def _ensure_name_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("destination names must not be empty")
        return value


class BatchingSettings(BaseModel):
    max_batch_size_bytes: int = Field(
        default=DEFAULT_MAX_BATCH_SIZE_BYTES,
        ge=1,
        description="Upper bound for the summed size of one request",
    )
    per_event_overhead_bytes: int = Field(
        default=DEFAULT_PER_EVENT_OVERHEAD_BYTES,
        ge=0,
        description="Fixed per-event size the service adds to each message",
    )
    max_batch_events: int = Field(
        default=DEFAULT_MAX_BATCH_EVENTS,
        ge=1,
        description="Maximum number of events in one request",
    )


class DeliverySettings(BaseModel):
    min_delivery_interval_seconds: float = Field(
        default=0.2,
        ge=0.0,
        description="Minimum spacing between consecutive service requests",
    )
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        description="Recoverable failures absorbed per batch before giving up",
    )
    max_elapsed_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description="Optional wall-clock ceiling for delivering one batch",
    )
    backoff_base_seconds: float = Field(
        default=0.5, ge=0.0, description="First delay after a throttled request"
    )
    backoff_max_seconds: float = Field(
        default=30.0, ge=0.0, description="Cap for the exponential backoff delay"
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Destinations delivered in parallel within one bulk",
    )
    fallback_to_stderr: bool = Field(
        default=False,
        description="Write events of failed batches to stderr as JSON lines",
    )


class AwsSettings(BaseModel):
    region: str | None = Field(default=None, description="AWS region name")
    endpoint_url: str | None = Field(
        default=None, description="Override endpoint (e.g. a local emulator)"
    )
    profile_name: str | None = Field(default=None, description="AWS profile")
    transport_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for connection-level failures before they are fatal",
    )


class Settings(BaseSettings):
    """Top-level configuration."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    destination: DestinationSettings = Field(default_factory=DestinationSettings)
    batching: BatchingSettings = Field(default_factory=BatchingSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    aws: AwsSettings = Field(default_factory=AwsSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOGSHIPPER_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        from typing import cast

        return cast(dict[str, object], self.model_dump(exclude_none=True))
