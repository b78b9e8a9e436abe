from __future__ import annotations

import asyncio
import io
import json
import sys
from typing import Any

import pytest
from pydantic import ValidationError

from logshipper import ShipmentError, get_sink
from logshipper.core.batcher import Batch, DestinationKey, LogEvent
from logshipper.core.errors import RemoteErrorKind, RemoteServiceError
from logshipper.core.rate import RateGovernor
from logshipper.core.record import Record
from logshipper.core.settings import Settings
from logshipper.metrics.metrics import MetricsCollector
from logshipper.plugins.sinks.awslogs import AwsLogsSink, AwsLogsSinkConfig
from logshipper.plugins.sinks.fallback import write_batch_to_stream
from logshipper.testing import FakeLogService, throttled


def _sink(service: FakeLogService, **config: Any) -> AwsLogsSink:
    values: dict[str, Any] = {
        "log_group_name": "app",
        "log_stream_name": "%{host}",
        "message_template": "%{message}",
    }
    values.update(config)
    return AwsLogsSink(
        values,
        client=service,
        governor=RateGovernor(0.0),
        metrics=MetricsCollector(),
    )


def _entry(second: int, host: str, message: str) -> dict[str, Any]:
    return {"@timestamp": 1_700_000_000 + second, "host": host, "message": message}


def _denied() -> RemoteServiceError:
    return RemoteServiceError(RemoteErrorKind.OTHER, "AccessDenied")


@pytest.mark.asyncio
async def test_bulk_is_split_per_stream_in_time_order(
    fake_log_service: FakeLogService,
) -> None:
    sink = _sink(fake_log_service)
    entries = [
        _entry(3, "a", "a3"),
        _entry(1, "b", "b1"),
        _entry(1, "a", "a1"),
        _entry(2, "a", "a2"),
    ]

    report = await sink.write_batch(entries)

    assert report.ok
    assert report.events_delivered == 4
    assert [e["message"] for e in fake_log_service.events("app", "a")] == [
        "a1",
        "a2",
        "a3",
    ]
    assert [e["message"] for e in fake_log_service.events("app", "b")] == ["b1"]
    assert fake_log_service.events("app", "a")[0]["timestamp"] == 1_700_000_001_000


@pytest.mark.asyncio
async def test_batches_of_one_stream_delivered_sequentially(
    fake_log_service: FakeLogService,
) -> None:
    fake_log_service.add_stream("app", "a")
    sink = _sink(fake_log_service, max_batch_events=2)

    report = await sink.write_batch([_entry(i, "a", f"m{i}") for i in range(5)])

    assert [len(p.events) for p in fake_log_service.puts] == [2, 2, 1]
    tokens = [p.sequence_token for p in fake_log_service.puts]
    assert tokens == [None, *(r.sequence_token for r in report.delivered[:-1])]


@pytest.mark.asyncio
async def test_accepts_records_and_default_json_message(
    fake_log_service: FakeLogService,
) -> None:
    sink = _sink(fake_log_service, log_stream_name="main", message_template="")
    record = Record.from_mapping({"@timestamp": 1_700_000_000, "b": 1, "a": "x"})

    await sink.write_batch([record])

    message = fake_log_service.events("app", "main")[0]["message"]
    assert json.loads(message) == {"@timestamp": 1_700_000_000, "a": "x", "b": 1}
    assert message.index('"a"') < message.index('"b"')


@pytest.mark.asyncio
async def test_tokens_carry_over_between_bulks(
    fake_log_service: FakeLogService,
) -> None:
    sink = _sink(fake_log_service)

    await sink.write_batch([_entry(1, "a", "first")])
    await sink.write_batch([_entry(2, "a", "second")])

    assert fake_log_service.count("create_log_stream") == 1
    assert sink.store.get(DestinationKey("app", "a")) is not None


@pytest.mark.asyncio
async def test_failed_batch_is_reported_and_later_batches_continue(
    fake_log_service: FakeLogService,
    captured_diagnostics: list[dict],
) -> None:
    fake_log_service.fail_next("put_log_events", _denied())
    sink = _sink(fake_log_service, max_batch_events=1)

    report = await sink.write_batch([_entry(1, "a", "lost"), _entry(2, "a", "kept")])

    assert not report.ok
    assert report.events_failed == 1
    assert report.events_delivered == 1
    assert [e["message"] for e in fake_log_service.events("app", "a")] == ["kept"]
    (warning,) = [d for d in captured_diagnostics if d["level"] == "WARN"]
    assert warning["component"] == "awslogs-sink"
    assert warning["message"] == "batch delivery failed"
    assert warning["log_stream_name"] == "a"
    assert warning["event_count"] == 1
    assert await sink.health_check() is False


@pytest.mark.asyncio
async def test_failure_of_one_stream_does_not_block_another(
    fake_log_service: FakeLogService,
) -> None:
    fake_log_service.add_stream("app", "a")
    fake_log_service.add_stream("app", "b", token="t-other")
    sink = _sink(fake_log_service, max_retries=0)

    report = await sink.write_batch([_entry(1, "a", "ok"), _entry(1, "b", "stuck")])

    assert [r.key for r in report.delivered] == [DestinationKey("app", "a")]
    assert [f.key for f in report.failed] == [DestinationKey("app", "b")]


@pytest.mark.asyncio
async def test_raise_on_failure(fake_log_service: FakeLogService) -> None:
    fake_log_service.fail_next("put_log_events", _denied())
    sink = _sink(fake_log_service, raise_on_failure=True)

    with pytest.raises(ShipmentError) as exc_info:
        await sink.write_batch([_entry(1, "a", "m")])

    assert exc_info.value.failures[0].event_count == 1


@pytest.mark.asyncio
async def test_failed_batch_written_to_stderr_fallback(
    fake_log_service: FakeLogService, monkeypatch: pytest.MonkeyPatch
) -> None:
    buffer = io.StringIO()
    monkeypatch.setattr(sys, "stderr", buffer)
    fake_log_service.fail_next("put_log_events", _denied())
    sink = _sink(fake_log_service, fallback_to_stderr=True)

    await sink.write_batch([_entry(1, "a", "m1"), _entry(2, "a", "m2")])

    lines = [json.loads(line) for line in buffer.getvalue().splitlines()]
    assert [line["message"] for line in lines] == ["m1", "m2"]
    assert lines[0]["log_group_name"] == "app"
    assert lines[0]["log_stream_name"] == "a"


def test_fallback_reports_broken_stream(captured_diagnostics: list[dict]) -> None:
    class _Broken(io.StringIO):
        def write(self, s: str) -> int:
            raise OSError("closed")

    batch = Batch(DestinationKey("app", "a"))
    batch.append(LogEvent(1, "m"), 27)

    assert write_batch_to_stream(batch, _Broken()) is False
    assert captured_diagnostics[-1]["message"] == "fallback failed, batch lost"


@pytest.mark.asyncio
async def test_metrics_follow_outcomes(fake_log_service: FakeLogService) -> None:
    metrics = MetricsCollector()
    fake_log_service.fail_next("put_log_events", _denied())
    sink = AwsLogsSink(
        {"log_group_name": "app", "log_stream_name": "%{host}", "max_batch_events": 1},
        client=fake_log_service,
        governor=RateGovernor(0.0),
        metrics=metrics,
    )

    await sink.write_batch([_entry(1, "a", "m1"), _entry(2, "a", "m2")])

    snap = await metrics.snapshot()
    assert snap.batches_failed == 1
    assert snap.events_dropped == 1
    assert snap.batches_delivered == 1
    assert snap.recoveries == {"not_found": 1}


@pytest.mark.asyncio
async def test_single_write_and_lifecycle(fake_log_service: FakeLogService) -> None:
    sink = _sink(fake_log_service)
    await sink.start()
    await sink.write(_entry(1, "a", "m"))
    assert await sink.health_check() is True
    await sink.stop()
    assert fake_log_service.events("app", "a")[0]["message"] == "m"


def test_config_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        AwsLogsSinkConfig(log_group_name="g", log_stream_name="s", bogus=1)


def test_get_sink_builds_config_from_settings() -> None:
    settings = Settings(
        destination={"log_group_name": "/app/%{env}", "log_stream_name": "%{host}"},
        delivery={"max_retries": 2},
        core={"enable_metrics": True},
    )

    sink = get_sink(settings, max_concurrency=8)

    assert sink.config.log_group_name == "/app/%{env}"
    assert sink.config.max_retries == 2
    assert sink.config.max_concurrency == 8


def test_sink_satisfies_plugin_protocol(fake_log_service: FakeLogService) -> None:
    from logshipper.plugins import BaseSink

    assert isinstance(_sink(fake_log_service), BaseSink)


@pytest.mark.asyncio
async def test_cancel_during_backoff_raises_promptly(
    fake_log_service: FakeLogService,
) -> None:
    fake_log_service.add_stream("app", "a")
    fake_log_service.fail_next("put_log_events", *(throttled() for _ in range(5)))
    sink = AwsLogsSink(
        {"log_group_name": "app", "log_stream_name": "%{host}"},
        client=fake_log_service,
        governor=RateGovernor(0.5),
        metrics=MetricsCollector(),
    )
    loop = asyncio.get_running_loop()

    task = asyncio.create_task(sink.write_batch([_entry(1, "a", "m")]))
    await asyncio.sleep(0.1)
    begin = loop.time()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=2.0)
    assert loop.time() - begin < 1.0
    assert fake_log_service.count("put_log_events") <= 2
    assert fake_log_service.events("app", "a") == []
