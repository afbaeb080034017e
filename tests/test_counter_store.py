"""Unit tests for the in-memory counter store."""

import asyncio
import threading
from datetime import datetime, timezone

import pytest

from rate_gate.adapters.store.in_memory import InMemoryCounterStore


@pytest.mark.asyncio
async def test_first_increment_creates_counter(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)

    result = await store.increment("k")

    assert result.count == 1
    assert result.reset_at == datetime.fromtimestamp(1060.0, tz=timezone.utc)


@pytest.mark.asyncio
async def test_increments_share_the_key_window(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)

    first = await store.increment("k")
    clock.advance(30)
    second = await store.increment("k")

    assert second.count == 2
    assert second.reset_at == first.reset_at


@pytest.mark.asyncio
async def test_elapsed_window_restarts_at_one(clock) -> None:
    store = InMemoryCounterStore(window_seconds=10, clock=clock)

    for _ in range(7):
        await store.increment("k")

    clock.advance(10)
    result = await store.increment("k")

    assert result.count == 1
    assert result.reset_at == datetime.fromtimestamp(1020.0, tz=timezone.utc)


@pytest.mark.asyncio
async def test_windows_are_independent_per_key(clock) -> None:
    store = InMemoryCounterStore(window_seconds=10, clock=clock)

    await store.increment("k1")
    clock.advance(5)
    k2 = await store.increment("k2")
    clock.advance(5)

    # k1's window is over, k2's is not
    assert (await store.increment("k1")).count == 1
    again = await store.increment("k2")
    assert again.count == 2
    assert again.reset_at == k2.reset_at


@pytest.mark.asyncio
async def test_decrement_is_floored_at_zero(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)

    await store.increment("k")
    await store.decrement("k")
    await store.decrement("k")

    assert store.get("k")[0] == 0
    assert (await store.increment("k")).count == 1


@pytest.mark.asyncio
async def test_decrement_unknown_key_is_noop(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)

    await store.decrement("missing")

    assert store.get("missing") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_reset_key_clears_only_that_key(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)
    await store.increment("k1")
    await store.increment("k1")
    await store.increment("k2")

    await store.reset_key("k1")

    assert store.get("k1") is None
    assert store.get("k2")[0] == 1
    assert (await store.increment("k1")).count == 1


@pytest.mark.asyncio
async def test_reset_all_clears_everything(clock) -> None:
    store = InMemoryCounterStore(window_seconds=60, clock=clock)
    await store.increment("k1")
    await store.increment("k2")

    await store.reset_all()

    assert len(store) == 0


@pytest.mark.asyncio
async def test_expired_entries_are_evicted_when_full(clock) -> None:
    store = InMemoryCounterStore(window_seconds=10, max_keys=2, clock=clock)
    await store.increment("a")
    await store.increment("b")

    clock.advance(10)
    await store.increment("c")

    assert len(store) == 1
    assert store.get("c")[0] == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_seconds": 0},
        {"window_seconds": -1},
        {"window_seconds": 10, "max_keys": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryCounterStore(**kwargs)


def test_no_lost_updates_under_concurrent_threads() -> None:
    store = InMemoryCounterStore(window_seconds=600)
    workers = 20
    hits_per_worker = 50

    def _worker() -> None:
        async def _run() -> None:
            for _ in range(hits_per_worker):
                await store.increment("shared")

        asyncio.run(_run())

    threads = [threading.Thread(target=_worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get("shared")[0] == workers * hits_per_worker


@pytest.mark.asyncio
async def test_concurrent_tasks_see_distinct_counts() -> None:
    store = InMemoryCounterStore(window_seconds=600)

    results = await asyncio.gather(*(store.increment("k") for _ in range(25)))

    assert sorted(r.count for r in results) == list(range(1, 26))
