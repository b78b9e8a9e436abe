from __future__ import annotations

import pytest
from pydantic import ValidationError

from logshipper.core.settings import Settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.core.internal_logging_enabled is False
    assert settings.destination.log_group_name == "logshipper"
    assert settings.batching.max_batch_size_bytes == 1_048_576
    assert settings.batching.per_event_overhead_bytes == 26
    assert settings.batching.max_batch_events == 10_000
    assert settings.delivery.min_delivery_interval_seconds == 0.2
    assert settings.delivery.max_retries == 10
    assert settings.delivery.max_elapsed_seconds is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIPPER_DESTINATION__LOG_GROUP_NAME", "/app/%{env}")
    monkeypatch.setenv("LOGSHIPPER_BATCHING__MAX_BATCH_EVENTS", "500")
    monkeypatch.setenv("LOGSHIPPER_DELIVERY__MAX_ELAPSED_SECONDS", "60")
    monkeypatch.setenv("LOGSHIPPER_AWS__REGION", "eu-west-1")
    monkeypatch.setenv("LOGSHIPPER_CORE__ENABLE_METRICS", "true")

    settings = Settings()

    assert settings.destination.log_group_name == "/app/%{env}"
    assert settings.batching.max_batch_events == 500
    assert settings.delivery.max_elapsed_seconds == 60.0
    assert settings.aws.region == "eu-west-1"
    assert settings.core.enable_metrics is True


def test_blank_destination_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(destination={"log_stream_name": "   "})


@pytest.mark.parametrize(
    "section",
    [
        {"batching": {"max_batch_size_bytes": 0}},
        {"delivery": {"max_retries": -1}},
        {"delivery": {"max_concurrency": 0}},
        {"delivery": {"min_delivery_interval_seconds": -0.1}},
    ],
)
def test_invalid_limits_rejected(section: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(**section)


def test_to_dict_omits_unset_optionals() -> None:
    data = Settings().to_dict()
    assert "region" not in data["aws"]  # type: ignore[operator]
    assert data["delivery"]["max_retries"] == 10  # type: ignore[index]
