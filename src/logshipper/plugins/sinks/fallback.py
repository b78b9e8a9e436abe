from __future__ import annotations

import sys
from typing import TextIO

import orjson

from ...core import diagnostics
from ...core.batcher import Batch


def _format_batch(batch: Batch) -> str:
    lines = [
        orjson.dumps(
            {
                "log_group_name": batch.key.group_name,
                "log_stream_name": batch.key.stream_name,
                "timestamp": event.timestamp,
                "message": event.message,
            }
        ).decode("utf-8")
        for event in batch.events
    ]
    return "\n".join(lines) + "\n"


def write_batch_to_stream(batch: Batch, stream: TextIO | None = None) -> bool:
    """Emit every event of an undeliverable batch as a JSON line.

    Returns False when the fallback stream itself failed.
    """
    target = stream if stream is not None else sys.stderr
    try:
        target.write(_format_batch(batch))
        target.flush()
    except Exception as exc:
        diagnostics.warn(
            "sink",
            "fallback failed, batch lost",
            destination=str(batch.key),
            event_count=len(batch),
            error=type(exc).__name__,
        )
        return False
    diagnostics.warn(
        "sink",
        "delivery failed, batch written to stderr fallback",
        destination=str(batch.key),
        event_count=len(batch),
    )
    return True
