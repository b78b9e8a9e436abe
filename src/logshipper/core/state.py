"""
Per-destination continuation token store.

Holds the last sequence token returned by the service for each destination.
Lives for the lifetime of the owning sink; nothing is persisted, so a fresh
process always starts without tokens and discovers them on first use.
"""

from __future__ import annotations

import threading

from .batcher import DestinationKey


class SequenceTokenStore:
    """Thread-safe mapping of destination to last known sequence token.

    A key mapped to ``None`` means the stream is known to accept writes
    without a token (freshly created or empty stream).
    """

    def __init__(self) -> None:
        self._tokens: dict[DestinationKey, str | None] = {}
        self._lock = threading.Lock()

    def get(self, key: DestinationKey) -> str | None:
        with self._lock:
            return self._tokens.get(key)

    def put(self, key: DestinationKey, token: str | None) -> None:
        with self._lock:
            self._tokens[key] = token

    def discard(self, key: DestinationKey) -> None:
        with self._lock:
            self._tokens.pop(key, None)

    def snapshot(self) -> dict[DestinationKey, str | None]:
        with self._lock:
            return dict(self._tokens)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
