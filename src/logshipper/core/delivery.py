"""
Delivery of a single batch with recovery.

Each batch is driven through a small state machine:

    ATTEMPT -> DONE                    put succeeded
    ATTEMPT -> CREATE_DESTINATION      group or stream missing
    ATTEMPT -> REFRESH_TOKEN           stale sequence token
    ATTEMPT -> BACKOFF                 service throttled the request
    CREATE_DESTINATION -> ATTEMPT      (first write to a new stream has no token)
    REFRESH_TOKEN -> ATTEMPT
    BACKOFF -> previous state

Every recoverable failure counts against ``max_retries`` (and optionally
``max_elapsed_seconds``); past the ceiling the batch fails with
``DeliveryFailedError``. Any other failure is fatal immediately.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from . import diagnostics
from .batcher import Batch, DestinationKey
from .errors import DeliveryFailedError, RemoteErrorKind, RemoteServiceError
from .ports import LogServiceClient
from .rate import RateGovernor
from .state import SequenceTokenStore

DEFAULT_MAX_RETRIES = 10


class DeliveryState(str, Enum):
    ATTEMPT = "attempt"
    CREATE_DESTINATION = "create_destination"
    REFRESH_TOKEN = "refresh_token"
    BACKOFF = "backoff"
    DONE = "done"


_NEXT_STATE = {
    RemoteErrorKind.NOT_FOUND: DeliveryState.CREATE_DESTINATION,
    RemoteErrorKind.INVALID_TOKEN: DeliveryState.REFRESH_TOKEN,
    RemoteErrorKind.RATE_LIMITED: DeliveryState.BACKOFF,
}


@dataclass
class DeliveryResult:
    key: DestinationKey
    event_count: int
    sequence_token: str | None
    attempts: int
    recoveries: Counter[str] = field(default_factory=Counter)


@dataclass
class _Progress:
    batch: Batch
    started: float
    attempts: int = 0
    retries: int = 0
    throttles: int = 0
    recoveries: Counter[str] = field(default_factory=Counter)
    last_error: BaseException | None = None
    resume: DeliveryState = DeliveryState.ATTEMPT


class DeliveryEngine:
    """Puts batches to the log service, recovering from known failures."""

    def __init__(
        self,
        client: LogServiceClient,
        *,
        store: SequenceTokenStore | None = None,
        governor: RateGovernor | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_elapsed_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._client = client
        self._store = store if store is not None else SequenceTokenStore()
        self._governor = governor if governor is not None else RateGovernor(0.0)
        self._max_retries = max_retries
        self._max_elapsed = max_elapsed_seconds
        self._clock = clock

    @property
    def store(self) -> SequenceTokenStore:
        return self._store

    async def deliver(self, batch: Batch) -> DeliveryResult:
        if not batch.events:
            raise ValueError("cannot deliver an empty batch")
        progress = _Progress(batch=batch, started=self._clock())
        events = batch.to_request_events()
        state = DeliveryState.ATTEMPT
        token: str | None = None

        while state is not DeliveryState.DONE:
            if state is DeliveryState.ATTEMPT:
                progress.attempts += 1
                try:
                    token = await self._put(batch.key, events)
                except RemoteServiceError as exc:
                    if exc.kind is RemoteErrorKind.ALREADY_ACCEPTED:
                        token = self._accept_duplicate(batch.key, exc)
                        state = DeliveryState.DONE
                    else:
                        state = self._recover(progress, exc, DeliveryState.ATTEMPT)
                    continue
                except Exception as exc:
                    raise self._fatal(progress, exc) from exc
                self._store.put(batch.key, token)
                state = DeliveryState.DONE
            elif state is DeliveryState.CREATE_DESTINATION:
                state = await self._create_destination(progress)
            elif state is DeliveryState.REFRESH_TOKEN:
                state = await self._refresh_token(progress)
            elif state is DeliveryState.BACKOFF:
                progress.throttles += 1
                delay = self._governor.backoff(progress.throttles)
                diagnostics.debug(
                    "delivery",
                    "throttled, backing off",
                    destination=str(batch.key),
                    delay_seconds=round(delay, 3),
                )
                state = progress.resume

        return DeliveryResult(
            key=batch.key,
            event_count=len(batch),
            sequence_token=token,
            attempts=progress.attempts,
            recoveries=progress.recoveries,
        )

    async def _put(self, key: DestinationKey, events: list[dict[str, Any]]) -> str | None:
        await self._governor.throttle()
        return await self._client.put_log_events(
            key.group_name, key.stream_name, events, self._store.get(key)
        )

    def _accept_duplicate(
        self, key: DestinationKey, exc: RemoteServiceError
    ) -> str | None:
        # The service already holds this batch; only the token is stale
        if exc.expected_token is None:
            self._store.discard(key)
        else:
            self._store.put(key, exc.expected_token)
        return exc.expected_token

    def _recover(
        self,
        progress: _Progress,
        exc: RemoteServiceError,
        resume: DeliveryState,
    ) -> DeliveryState:
        next_state = _NEXT_STATE.get(exc.kind)
        if next_state is None:
            raise self._fatal(progress, exc) from exc
        progress.last_error = exc
        progress.retries += 1
        progress.recoveries[exc.kind.value] += 1
        if progress.retries > self._max_retries:
            raise self._fatal(
                progress,
                exc,
                reason=f"gave up after {progress.retries} recoverable failures",
            ) from exc
        if (
            self._max_elapsed is not None
            and self._clock() - progress.started > self._max_elapsed
        ):
            raise self._fatal(
                progress,
                exc,
                reason=f"gave up after {self._max_elapsed}s of retries",
            ) from exc
        # After a backoff, retry the step that was throttled
        progress.resume = resume if next_state is DeliveryState.BACKOFF else next_state
        return next_state

    async def _create_destination(self, progress: _Progress) -> DeliveryState:
        key = progress.batch.key
        diagnostics.debug("delivery", "creating destination", destination=str(key))
        try:
            await self._create_ignoring_existing(
                self._client.create_log_group, key.group_name
            )
            await self._create_ignoring_existing(
                self._client.create_log_stream, key.group_name, key.stream_name
            )
        except RemoteServiceError as exc:
            return self._recover(progress, exc, DeliveryState.CREATE_DESTINATION)
        except Exception as exc:
            raise self._fatal(progress, exc) from exc
        self._store.discard(key)
        return DeliveryState.ATTEMPT

    async def _create_ignoring_existing(self, create: Callable[..., Any], *args: str) -> None:
        await self._governor.throttle()
        try:
            await create(*args)
        except RemoteServiceError as exc:
            if exc.kind is not RemoteErrorKind.ALREADY_EXISTS:
                raise

    async def _refresh_token(self, progress: _Progress) -> DeliveryState:
        key = progress.batch.key
        error = progress.last_error
        if isinstance(error, RemoteServiceError) and error.expected_token is not None:
            self._store.put(key, error.expected_token)
            return DeliveryState.ATTEMPT
        diagnostics.debug("delivery", "describing stream for token", destination=str(key))
        try:
            await self._governor.throttle()
            streams = await self._client.describe_log_streams(
                key.group_name, key.stream_name
            )
        except RemoteServiceError as exc:
            return self._recover(progress, exc, DeliveryState.REFRESH_TOKEN)
        except Exception as exc:
            raise self._fatal(progress, exc) from exc
        for info in streams:
            if info.stream_name == key.stream_name:
                self._store.put(key, info.upload_sequence_token)
                return DeliveryState.ATTEMPT
        return self._recover(
            progress,
            RemoteServiceError(
                RemoteErrorKind.NOT_FOUND, f"log stream {key.stream_name} not found"
            ),
            DeliveryState.ATTEMPT,
        )

    def _fatal(
        self,
        progress: _Progress,
        exc: BaseException,
        *,
        reason: str | None = None,
    ) -> DeliveryFailedError:
        key = progress.batch.key
        detail = reason or f"{type(exc).__name__}: {exc}"
        return DeliveryFailedError(
            f"delivery to {key} failed: {detail}",
            key=key,
            event_count=len(progress.batch),
            attempts=progress.attempts,
            cause=exc,
        )
