from __future__ import annotations

import io
import json
import sys

import pytest

from logshipper.core import diagnostics as diag


def test_disabled_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", raising=False)
    captured: list[dict] = []
    diag.set_writer_for_tests(captured.append)

    diag.warn("delivery", "ignored")

    assert diag.is_enabled() is False
    assert captured == []


@pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
def test_enabled_from_environment(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", value)
    assert diag.is_enabled() is True


def test_override_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", "true")
    diag.set_enabled(False)
    assert diag.is_enabled() is False
    diag.set_enabled(None)
    assert diag.is_enabled() is True


def test_payload_shape(captured_diagnostics: list[dict]) -> None:
    diag.warn("awslogs-sink", "batch delivery failed", event_count=3)
    diag.debug("delivery", "throttled")

    first, second = captured_diagnostics
    assert first["level"] == "WARN"
    assert first["component"] == "awslogs-sink"
    assert first["message"] == "batch delivery failed"
    assert first["event_count"] == 3
    assert isinstance(first["ts"], float)
    assert second["level"] == "DEBUG"


def test_writer_errors_are_swallowed() -> None:
    def _broken(payload: dict) -> None:
        raise RuntimeError("sink down")

    diag.set_enabled(True)
    diag.set_writer_for_tests(_broken)

    diag.warn("delivery", "still fine")


def test_default_writer_emits_json_lines(monkeypatch: pytest.MonkeyPatch) -> None:
    buffer = io.StringIO()
    monkeypatch.setattr(sys, "stderr", buffer)
    diag.set_enabled(True)

    diag.warn("delivery", "hello", destination="app/host-a")

    line = buffer.getvalue()
    assert line.endswith("\n")
    payload = json.loads(line)
    assert payload["destination"] == "app/host-a"
    assert payload["message"] == "hello"
