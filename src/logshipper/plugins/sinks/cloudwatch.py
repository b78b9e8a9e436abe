"""
CloudWatch Logs client adapter.

Wraps a boto3 ``logs`` client behind the async ``LogServiceClient`` protocol.
Blocking SDK calls run in worker threads; service error codes are mapped onto
``RemoteErrorKind`` and connection-level faults are retried a bounded number
of times before surfacing.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Sequence, TypeVar

import boto3
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ...core import diagnostics
from ...core.errors import NetworkError, RemoteErrorKind, RemoteServiceError
from ...core.ports import LogStreamInfo
from ...core.retry import AsyncRetrier, RetryConfig

T = TypeVar("T")

_KIND_BY_CODE = {
    "ResourceNotFoundException": RemoteErrorKind.NOT_FOUND,
    "InvalidSequenceTokenException": RemoteErrorKind.INVALID_TOKEN,
    "DataAlreadyAcceptedException": RemoteErrorKind.ALREADY_ACCEPTED,
    "ThrottlingException": RemoteErrorKind.RATE_LIMITED,
    "Throttling": RemoteErrorKind.RATE_LIMITED,
    "ResourceAlreadyExistsException": RemoteErrorKind.ALREADY_EXISTS,
}

_TRANSPORT_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


def map_client_error(exc: ClientError) -> RemoteServiceError:
    response: dict[str, Any] = getattr(exc, "response", None) or {}
    error = response.get("Error", {}) or {}
    code = str(error.get("Code", ""))
    kind = _KIND_BY_CODE.get(code, RemoteErrorKind.OTHER)
    # Modeled exception fields are parsed to the top level of the response
    expected = response.get("expectedSequenceToken") or error.get(
        "expectedSequenceToken"
    )
    return RemoteServiceError(
        kind,
        str(error.get("Message") or exc),
        expected_token=expected or None,
        code=code or None,
        cause=exc,
    )


def create_logs_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    profile_name: str | None = None,
) -> Any:
    session = boto3.session.Session(profile_name=profile_name, region_name=region)
    return session.client("logs", endpoint_url=endpoint_url)


class CloudWatchLogsClient:
    """Async adapter over a boto3 CloudWatch Logs client."""

    def __init__(
        self,
        client: Any,
        *,
        transport_retry: RetryConfig | None = None,
    ) -> None:
        self._client = client
        self._retry_config = transport_retry or RetryConfig(
            max_attempts=3,
            base_delay=0.2,
            max_delay=2.0,
            retryable_exceptions=[NetworkError],
        )

    async def _call(self, method: Callable[..., T], **kwargs: Any) -> T:
        async def _once() -> T:
            try:
                return await asyncio.to_thread(method, **kwargs)
            except ClientError as exc:
                raise map_client_error(exc) from exc
            except _TRANSPORT_ERRORS as exc:
                raise NetworkError(str(exc), cause=exc) from exc

        return await AsyncRetrier(self._retry_config).retry(_once)

    async def put_log_events(
        self,
        group_name: str,
        stream_name: str,
        events: Sequence[dict[str, Any]],
        sequence_token: str | None = None,
    ) -> str | None:
        kwargs: dict[str, Any] = {
            "logGroupName": group_name,
            "logStreamName": stream_name,
            "logEvents": list(events),
        }
        if sequence_token:
            kwargs["sequenceToken"] = sequence_token
        response = await self._call(self._client.put_log_events, **kwargs)
        rejected = response.get("rejectedLogEventsInfo")
        if rejected:
            diagnostics.warn(
                "cloudwatch",
                "service rejected some log events",
                log_group_name=group_name,
                log_stream_name=stream_name,
                **rejected,
            )
        token = response.get("nextSequenceToken")
        return str(token) if token else None

    async def create_log_group(self, group_name: str) -> None:
        await self._call(self._client.create_log_group, logGroupName=group_name)

    async def create_log_stream(self, group_name: str, stream_name: str) -> None:
        await self._call(
            self._client.create_log_stream,
            logGroupName=group_name,
            logStreamName=stream_name,
        )

    async def describe_log_streams(
        self, group_name: str, stream_name_prefix: str | None = None
    ) -> list[LogStreamInfo]:
        kwargs: dict[str, Any] = {"logGroupName": group_name}
        if stream_name_prefix:
            kwargs["logStreamNamePrefix"] = stream_name_prefix

        def _collect(**params: Any) -> list[dict[str, Any]]:
            paginator = self._client.get_paginator("describe_log_streams")
            streams: list[dict[str, Any]] = []
            for page in paginator.paginate(**params):
                streams.extend(page.get("logStreams", []))
            return streams

        raw = await self._call(_collect, **kwargs)
        return [
            LogStreamInfo(
                stream_name=str(s.get("logStreamName", "")),
                upload_sequence_token=s.get("uploadSequenceToken") or None,
            )
            for s in raw
        ]
