"""
Bounded concurrency for per-destination delivery.

Destinations are independent, so their batch sequences may be delivered in
parallel; batches of one destination must stay sequential. ``run_per_key``
gives each destination exactly one task that walks its batches in order,
while ``AsyncBoundedExecutor`` caps how many destinations are in flight.
"""

from __future__ import annotations

import asyncio
import types
from typing import Awaitable, Callable, Generic, Hashable, Iterable, Sequence, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class AsyncBoundedExecutor(Generic[T]):
    """Run coroutine factories with at most ``max_concurrency`` in flight.

    Usage:
        async with AsyncBoundedExecutor(max_concurrency=4) as ex:
            fut = await ex.submit(lambda: deliver(key))
            result = await fut

    Leaving the block normally waits for every submitted job. Leaving it with
    an exception, cancellation included, cancels queued and running jobs.
    """

    def __init__(self, *, max_concurrency: int) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._max_concurrency = max_concurrency
        self._queue: asyncio.Queue[
            tuple[Callable[[], Awaitable[T]], asyncio.Future[T]]
        ] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._closed = False
        self._stopping = False

    async def __aenter__(self) -> AsyncBoundedExecutor[T]:
        for _ in range(self._max_concurrency):
            self._workers.append(asyncio.create_task(self._worker_loop()))
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        await self._shutdown(cancel_pending=_exc is not None)

    async def submit(self, factory: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        if self._closed:
            raise RuntimeError("Executor is closed")
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((factory, future))
        return future

    async def run_all(self, factories: Iterable[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run every factory; results in submission order."""
        futures = [await self.submit(f) for f in factories]
        results: list[T] = await asyncio.gather(*futures)
        return list(results)

    async def _worker_loop(self) -> None:
        while True:
            try:
                factory, future = await self._queue.get()
            except asyncio.CancelledError:
                return
            try:
                if future.cancelled():
                    continue
                try:
                    result = await factory()
                except asyncio.CancelledError:
                    future.cancel()
                    if self._stopping:
                        return
                except Exception as e:  # noqa: BLE001
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def _shutdown(self, *, cancel_pending: bool = False) -> None:
        if self._closed:
            return
        self._closed = True
        if cancel_pending:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                future.cancel()
                self._queue.task_done()
        else:
            await self._queue.join()
        # Jobs still running are cancelled along with their workers.
        self._stopping = True
        for w in self._workers:
            w.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()


async def run_per_key(
    groups: dict[K, Sequence[V]],
    handler: Callable[[K, Sequence[V]], Awaitable[T]],
    *,
    max_concurrency: int,
) -> dict[K, T]:
    """Run ``handler`` once per key with bounded parallelism across keys.

    The handler owns its key's whole item sequence, so items sharing a key
    are never processed concurrently.
    """
    if not groups:
        return {}
    keys = list(groups)
    workers = min(max_concurrency, len(keys))
    async with AsyncBoundedExecutor(max_concurrency=workers) as ex:
        results = await ex.run_all(
            [lambda k=k: handler(k, groups[k]) for k in keys]  # type: ignore[misc]
        )
    return dict(zip(keys, results))
