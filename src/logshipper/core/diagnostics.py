"""
Internal diagnostics for logshipper.

Diagnostics are structured JSON lines written to stderr describing non-fatal
conditions inside the shipper itself (recoveries, dropped batches, fallback
activation). They are disabled by default and enabled through
``LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED`` or :func:`set_enabled`.

Emitting a diagnostic never raises.
"""

from __future__ import annotations

import os
import sys
import time
from typing import Any, Callable

import orjson

Writer = Callable[[dict[str, Any]], None]

_ENV_FLAG = "LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED"
_TRUTHY = {"1", "true", "yes", "on"}

_enabled_override: bool | None = None


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str, option=orjson.OPT_APPEND_NEWLINE)
    sys.stderr.write(line.decode("utf-8"))
    sys.stderr.flush()


_writer: Writer = _stderr_writer


def set_enabled(enabled: bool | None) -> None:
    """Force diagnostics on or off; ``None`` defers to the environment."""
    global _enabled_override
    _enabled_override = enabled


def is_enabled() -> bool:
    if _enabled_override is not None:
        return _enabled_override
    return os.getenv(_ENV_FLAG, "").strip().lower() in _TRUTHY


def set_writer_for_tests(writer: Writer) -> None:
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _writer, _enabled_override
    _writer = _stderr_writer
    _enabled_override = None


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    if not is_enabled():
        return
    payload: dict[str, Any] = {
        "ts": time.time(),
        "level": level,
        "component": component,
        "message": message,
    }
    payload.update(fields)
    try:
        _writer(payload)
    except Exception:
        # Diagnostics must never break delivery
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    _emit("WARN", component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit("DEBUG", component, message, fields)
