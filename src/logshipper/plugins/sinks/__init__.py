from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, runtime_checkable


@runtime_checkable
class BaseSink(Protocol):
    """Base async sink interface.

    Sinks receive bulks of records from the ingestion pipeline and deliver
    them to an external destination. ``write_batch`` returns only when every
    record has reached a terminal outcome.
    """

    async def start(self) -> None:  # Optional lifecycle hook
        ...

    async def stop(self) -> None:  # Optional lifecycle hook
        ...

    async def write(self, _entry: Mapping[str, Any]) -> None:  # noqa: ARG002
        """Write a single structured log entry."""
        ...

    async def write_batch(self, _records: Iterable[Any]) -> Any:  # noqa: ARG002
        """Write a bulk of records."""
        ...


__all__ = ["BaseSink"]
