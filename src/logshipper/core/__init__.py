"""
Core batching and delivery engine.
"""

from .batcher import Batch, Batcher, DestinationKey, LogEvent
from .delivery import DeliveryEngine, DeliveryResult, DeliveryState
from .errors import (
    ConfigurationError,
    DeliveryFailedError,
    ErrorCategory,
    ErrorSeverity,
    LogShipperError,
    NetworkError,
    RemoteErrorKind,
    RemoteServiceError,
    RetryExhaustedError,
    SerializationError,
    ShipmentError,
)
from .ports import LogServiceClient, LogStreamInfo
from .rate import RateGovernor
from .record import Record
from .retry import AsyncRetrier, RetryConfig, RetryStats, retry_async
from .settings import Settings
from .state import SequenceTokenStore
from .templates import FieldTemplate

__all__ = [
    "AsyncRetrier",
    "Batch",
    "Batcher",
    "ConfigurationError",
    "DeliveryEngine",
    "DeliveryFailedError",
    "DeliveryResult",
    "DeliveryState",
    "DestinationKey",
    "ErrorCategory",
    "ErrorSeverity",
    "FieldTemplate",
    "LogEvent",
    "LogServiceClient",
    "LogShipperError",
    "LogStreamInfo",
    "NetworkError",
    "RateGovernor",
    "Record",
    "RemoteErrorKind",
    "RemoteServiceError",
    "RetryConfig",
    "RetryExhaustedError",
    "RetryStats",
    "SequenceTokenStore",
    "SerializationError",
    "Settings",
    "ShipmentError",
    "retry_async",
]
