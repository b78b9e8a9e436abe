"""
Testing utilities for logshipper.

Example:
    from logshipper import AwsLogsSink
    from logshipper.testing import FakeLogService

    async def test_ship() -> None:
        service = FakeLogService()
        sink = AwsLogsSink(log_group_name="app", log_stream_name="s", client=service)
        await sink.write_batch([{"message": "hi"}])
        assert service.events("app", "s")
"""

from .fakes import FakeLogService, FakeStream, PutCall, throttled

__all__ = ["FakeLogService", "FakeStream", "PutCall", "throttled"]
