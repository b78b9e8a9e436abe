from __future__ import annotations

import threading

from logshipper.core.batcher import DestinationKey
from logshipper.core.state import SequenceTokenStore

KEY = DestinationKey("app", "host-a")


def test_unknown_key_has_no_token() -> None:
    store = SequenceTokenStore()
    assert store.get(KEY) is None
    assert KEY not in store


def test_put_get_and_discard() -> None:
    store = SequenceTokenStore()
    store.put(KEY, "t1")
    store.put(KEY, "t2")

    assert store.get(KEY) == "t2"
    assert len(store) == 1

    store.discard(KEY)
    store.discard(KEY)
    assert KEY not in store


def test_none_token_is_remembered() -> None:
    store = SequenceTokenStore()
    store.put(KEY, None)
    assert KEY in store
    assert store.snapshot() == {KEY: None}


def test_keys_compare_by_value() -> None:
    store = SequenceTokenStore()
    store.put(DestinationKey("app", "s"), "t9")
    assert store.get(DestinationKey("app", "s")) == "t9"


def test_stores_are_isolated() -> None:
    first, second = SequenceTokenStore(), SequenceTokenStore()
    first.put(KEY, "t1")
    assert second.get(KEY) is None


def test_concurrent_writers_from_threads() -> None:
    store = SequenceTokenStore()

    def _writer(n: int) -> None:
        for i in range(200):
            store.put(DestinationKey("app", f"s{n}"), f"t{i}")

    threads = [threading.Thread(target=_writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 8
    assert all(token == "t199" for token in store.snapshot().values())
