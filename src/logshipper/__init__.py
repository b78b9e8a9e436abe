"""
Public entrypoints for logshipper.

Provides `get_sink()` to build a CloudWatch Logs sink from environment
configuration, plus the record and settings types callers need.
"""

from __future__ import annotations

from typing import Any

from ._version import __version__
from .core import diagnostics as _diagnostics
from .core.errors import DeliveryFailedError, LogShipperError, ShipmentError
from .core.record import Record
from .core.settings import Settings
from .metrics.metrics import MetricsCollector as _MetricsCollector
from .plugins.sinks.awslogs import AwsLogsSink, AwsLogsSinkConfig, ShipmentReport

__all__ = [
    "AwsLogsSink",
    "AwsLogsSinkConfig",
    "DeliveryFailedError",
    "LogShipperError",
    "Record",
    "Settings",
    "ShipmentError",
    "ShipmentReport",
    "get_sink",
    "__version__",
    "VERSION",
]

VERSION = __version__


def get_sink(settings: Settings | None = None, **overrides: Any) -> AwsLogsSink:
    """Return a CloudWatch Logs sink configured from settings.

    @docs:examples
    ```python
    import asyncio
    from logshipper import get_sink

    async def main() -> None:
        # LOGSHIPPER_DESTINATION__LOG_GROUP_NAME=/app/%{service}
        # LOGSHIPPER_DESTINATION__LOG_STREAM_NAME=%{host}
        sink = get_sink()
        await sink.start()
        report = await sink.write_batch(
            [{"@timestamp": "2024-01-01T00:00:00Z", "service": "api",
              "host": "a", "message": "started"}]
        )
        assert report.ok
        await sink.stop()

    asyncio.run(main())
    ```

    @docs:notes
    - Keyword overrides take precedence over settings values
    - Metrics are collected in an isolated registry when
      `core.enable_metrics` is set
    - Token state lives in the sink; each sink starts without tokens
    """
    s = settings or Settings()
    if s.core.internal_logging_enabled:
        _diagnostics.set_enabled(True)
    config = AwsLogsSinkConfig.from_settings(s, **overrides)
    metrics = _MetricsCollector(enabled=s.core.enable_metrics)
    return AwsLogsSink(config, metrics=metrics)
