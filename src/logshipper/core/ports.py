"""
Boundary with the remote log service.

Implementations raise :class:`~logshipper.core.errors.RemoteServiceError`
with the matching :class:`~logshipper.core.errors.RemoteErrorKind` for every
service-side failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class LogStreamInfo:
    stream_name: str
    upload_sequence_token: str | None = None


@runtime_checkable
class LogServiceClient(Protocol):
    async def put_log_events(
        self,
        group_name: str,
        stream_name: str,
        events: Sequence[dict[str, Any]],
        sequence_token: str | None = None,
    ) -> str | None:
        """Append events; returns the next sequence token."""
        ...

    async def create_log_group(self, group_name: str) -> None: ...

    async def create_log_stream(self, group_name: str, stream_name: str) -> None: ...

    async def describe_log_streams(
        self, group_name: str, stream_name_prefix: str | None = None
    ) -> list[LogStreamInfo]: ...
