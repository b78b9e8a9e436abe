"""
Error hierarchy for logshipper.

All errors raised by the shipping engine derive from ``LogShipperError`` and
carry an ``ErrorContext`` describing category, severity and the component
that raised them. Remote service failures are modelled as a closed set of
``RemoteErrorKind`` values so the delivery engine can match them exhaustively.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .batcher import DestinationKey
    from .retry import RetryStats


class ErrorCategory(str, Enum):
    """High-level grouping used for diagnostics and metrics labels."""

    CONFIG = "config"
    SERIALIZATION = "serialization"
    NETWORK = "network"
    REMOTE = "remote"
    DELIVERY = "delivery"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorRecoveryStrategy(str, Enum):
    NONE = "none"
    RETRY = "retry"
    CREATE = "create"
    REFRESH = "refresh"
    BACKOFF = "backoff"


class ErrorContext(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    error_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    category: ErrorCategory = ErrorCategory.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE
    component_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    *,
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE,
    component_name: str | None = None,
    **metadata: Any,
) -> ErrorContext:
    return ErrorContext(
        category=category,
        severity=severity,
        recovery_strategy=recovery_strategy,
        component_name=component_name,
        metadata=metadata,
    )


class LogShipperError(Exception):
    """Base error with structured context preservation."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
        component_name: str | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_context is None:
            error_context = create_error_context(
                category or self.default_category,
                severity or self.default_severity,
                recovery_strategy=self._recovery_strategy(),
                component_name=component_name,
                **metadata,
            )
        self.context = error_context
        if cause is not None:
            self.__cause__ = cause

    def _recovery_strategy(self) -> ErrorRecoveryStrategy:
        return ErrorRecoveryStrategy.NONE

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for diagnostics and persistence."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.model_dump(mode="json"),
            "cause": repr(self.__cause__) if self.__cause__ else None,
        }


class ConfigurationError(LogShipperError):
    default_category = ErrorCategory.CONFIG
    default_severity = ErrorSeverity.HIGH


class SerializationError(LogShipperError):
    default_category = ErrorCategory.SERIALIZATION
    default_severity = ErrorSeverity.HIGH


class NetworkError(LogShipperError):
    default_category = ErrorCategory.NETWORK

    def _recovery_strategy(self) -> ErrorRecoveryStrategy:
        return ErrorRecoveryStrategy.RETRY


class RemoteErrorKind(str, Enum):
    """Closed set of outcomes a remote log service call can fail with."""

    NOT_FOUND = "not_found"
    INVALID_TOKEN = "invalid_token"
    RATE_LIMITED = "rate_limited"
    ALREADY_EXISTS = "already_exists"
    ALREADY_ACCEPTED = "already_accepted"
    OTHER = "other"


_RECOVERY_BY_KIND = {
    RemoteErrorKind.NOT_FOUND: ErrorRecoveryStrategy.CREATE,
    RemoteErrorKind.INVALID_TOKEN: ErrorRecoveryStrategy.REFRESH,
    RemoteErrorKind.ALREADY_ACCEPTED: ErrorRecoveryStrategy.REFRESH,
    RemoteErrorKind.RATE_LIMITED: ErrorRecoveryStrategy.BACKOFF,
}


class RemoteServiceError(LogShipperError):
    """Failure reported by the remote log service.

    ``expected_token`` carries the service's current continuation token when
    the response included one (stale token and already-accepted responses).
    """

    default_category = ErrorCategory.REMOTE

    def __init__(
        self,
        kind: RemoteErrorKind,
        message: str = "",
        *,
        expected_token: str | None = None,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.expected_token = expected_token
        self.code = code
        super().__init__(
            message or kind.value,
            cause=cause,
            code=code,
            kind=kind.value,
        )

    def _recovery_strategy(self) -> ErrorRecoveryStrategy:
        return _RECOVERY_BY_KIND.get(self.kind, ErrorRecoveryStrategy.NONE)

    @property
    def is_recoverable(self) -> bool:
        return self.kind in _RECOVERY_BY_KIND


class RetryExhaustedError(LogShipperError):
    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        *,
        retry_stats: RetryStats | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.retry_stats = retry_stats


class DeliveryFailedError(LogShipperError):
    """A batch could not be delivered; its events were not written."""

    default_category = ErrorCategory.DELIVERY
    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        *,
        key: DestinationKey,
        event_count: int,
        attempts: int = 0,
        cause: BaseException | None = None,
    ) -> None:
        self.key = key
        self.event_count = event_count
        self.attempts = attempts
        super().__init__(
            message,
            cause=cause,
            component_name="delivery",
            log_group_name=key.group_name,
            log_stream_name=key.stream_name,
            event_count=event_count,
            attempts=attempts,
        )


class ShipmentError(LogShipperError):
    """Raised for a bulk write when one or more batches failed."""

    default_category = ErrorCategory.DELIVERY
    default_severity = ErrorSeverity.HIGH

    def __init__(self, failures: list[DeliveryFailedError]) -> None:
        self.failures = list(failures)
        dropped = sum(f.event_count for f in self.failures)
        super().__init__(
            f"{len(self.failures)} batch(es) failed, {dropped} event(s) not delivered",
            cause=self.failures[0] if self.failures else None,
        )
