"""
Batch formation.

Records are grouped by destination (log group, log stream), ordered by
timestamp, and packed greedily into batches bounded by serialized size and
event count. Each batch belongs to exactly one destination.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple

from .record import Record
from .serialization import canonical_json
from .templates import FieldTemplate

# CloudWatch Logs limits for a single PutLogEvents call
DEFAULT_MAX_BATCH_SIZE_BYTES = 1_048_576
DEFAULT_PER_EVENT_OVERHEAD_BYTES = 26
DEFAULT_MAX_BATCH_EVENTS = 10_000


class DestinationKey(NamedTuple):
    group_name: str
    stream_name: str

    def __str__(self) -> str:
        return f"{self.group_name}/{self.stream_name}"


class LogEvent(NamedTuple):
    timestamp: int  # epoch milliseconds
    message: str


@dataclass
class Batch:
    key: DestinationKey
    events: list[LogEvent] = field(default_factory=list)
    size_bytes: int = 0

    def __len__(self) -> int:
        return len(self.events)

    def append(self, event: LogEvent, cost: int) -> None:
        self.events.append(event)
        self.size_bytes += cost

    def to_request_events(self) -> list[dict[str, Any]]:
        return [{"timestamp": e.timestamp, "message": e.message} for e in self.events]


def event_cost(message: str, overhead: int) -> int:
    return len(message.encode("utf-8")) + overhead


class Batcher:
    """Turns an unordered bulk of records into ordered, size-bounded batches."""

    def __init__(
        self,
        *,
        group_name_template: str,
        stream_name_template: str,
        message_template: str = "",
        max_batch_size_bytes: int = DEFAULT_MAX_BATCH_SIZE_BYTES,
        per_event_overhead_bytes: int = DEFAULT_PER_EVENT_OVERHEAD_BYTES,
        max_batch_events: int = DEFAULT_MAX_BATCH_EVENTS,
    ) -> None:
        if max_batch_size_bytes <= 0:
            raise ValueError("max_batch_size_bytes must be > 0")
        if per_event_overhead_bytes < 0:
            raise ValueError("per_event_overhead_bytes must be >= 0")
        if max_batch_events <= 0:
            raise ValueError("max_batch_events must be > 0")
        self._group = FieldTemplate(group_name_template)
        self._stream = FieldTemplate(stream_name_template)
        self._message = FieldTemplate(message_template)
        self._max_bytes = max_batch_size_bytes
        self._overhead = per_event_overhead_bytes
        self._max_events = max_batch_events

    def resolve_key(self, record: Record) -> DestinationKey:
        return DestinationKey(
            self._group.render(record.attributes, record.timestamp),
            self._stream.render(record.attributes, record.timestamp),
        )

    def render_message(self, record: Record) -> str:
        if self._message:
            return self._message.render(record.attributes, record.timestamp)
        if record.rendered_message is not None:
            return record.rendered_message
        return canonical_json(record.attributes)

    def group(self, records: Iterable[Record]) -> dict[DestinationKey, list[LogEvent]]:
        """Group events per destination, each list in timestamp order."""
        # sorted() is stable: equal timestamps keep arrival order
        ordered = sorted(records, key=lambda r: r.timestamp)
        grouped: dict[DestinationKey, list[LogEvent]] = {}
        for record in ordered:
            key = self.resolve_key(record)
            grouped.setdefault(key, []).append(
                LogEvent(record.timestamp_millis, self.render_message(record))
            )
        return grouped

    def pack(self, key: DestinationKey, events: Iterable[LogEvent]) -> list[Batch]:
        batches: list[Batch] = []
        current = Batch(key)
        for event in events:
            cost = event_cost(event.message, self._overhead)
            fits = cost + current.size_bytes < self._max_bytes
            if current.events and (not fits or len(current) >= self._max_events):
                batches.append(current)
                current = Batch(key)
            current.append(event, cost)
        if current.events:
            batches.append(current)
        return batches

    def form_batches(self, records: Iterable[Record]) -> list[Batch]:
        batches: list[Batch] = []
        for key, events in self.group(records).items():
            batches.extend(self.pack(key, events))
        return batches
