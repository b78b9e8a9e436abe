"""
Log record handed to the shipper by the ingestion pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Mapping

_TIMESTAMP_FIELDS = ("@timestamp", "timestamp")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Unsupported timestamp value: {value!r}")


@dataclass(frozen=True)
class Record:
    """One log entry.

    ``attributes`` drive template evaluation and form the JSON body when no
    message template is configured. ``rendered_message`` holds text already
    produced by an upstream codec and is preferred over the JSON body.
    """

    timestamp: datetime
    attributes: Mapping[str, Any] = field(default_factory=dict)
    rendered_message: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", _coerce_timestamp(self.timestamp))
        object.__setattr__(
            self, "attributes", MappingProxyType(dict(self.attributes))
        )

    @property
    def timestamp_millis(self) -> int:
        return (self.timestamp - _EPOCH) // _ONE_MS

    @classmethod
    def from_mapping(
        cls,
        entry: Mapping[str, Any],
        *,
        rendered_message: str | None = None,
    ) -> Record:
        """Build a record from a structured entry.

        The timestamp is taken from ``@timestamp`` or ``timestamp`` (datetime,
        epoch seconds, or ISO-8601 text); entries without one are stamped now.
        """
        ts: Any = None
        for name in _TIMESTAMP_FIELDS:
            if entry.get(name) is not None:
                ts = entry[name]
                break
        if ts is None:
            ts = datetime.now(timezone.utc)
        return cls(
            timestamp=_coerce_timestamp(ts),
            attributes=dict(entry),
            rendered_message=rendered_message,
        )
