from __future__ import annotations

import asyncio

import pytest

from shudenout.storage.ttl_cache import RequestDeduplicator, TtlCache, make_key


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache: TtlCache[str, int] = TtlCache(10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl_s=30)

    clock.now = 9.9
    assert cache.get("a") == 1
    clock.now = 10.0
    assert cache.get("a") is None
    assert "b" in cache

    clock.now = 31
    assert cache.sweep() == 1
    assert len(cache) == 0


def test_make_key_ignores_parameter_order() -> None:
    assert make_key("hotels", {"b": 2, "a": 1}) == make_key("hotels", {"a": 1, "b": 2}) == "hotels:a=1&b=2"


@pytest.mark.asyncio
async def test_identical_requests_share_one_computation() -> None:
    dedup: RequestDeduplicator[str] = RequestDeduplicator(TtlCache(60))
    release = asyncio.Event()
    calls = 0

    async def compute() -> str:
        nonlocal calls
        calls += 1
        await release.wait()
        return "result"

    first = asyncio.ensure_future(dedup.run("key", compute))
    second = asyncio.ensure_future(dedup.run("key", compute))
    await asyncio.sleep(0)
    assert dedup.pending() == 1

    release.set()
    assert await asyncio.gather(first, second) == ["result", "result"]
    assert await dedup.run("key", compute) == "result"
    assert calls == 1


@pytest.mark.asyncio
async def test_failures_and_rejected_results_are_not_cached() -> None:
    dedup: RequestDeduplicator[str] = RequestDeduplicator(TtlCache(60), cacheable=lambda value: value != "partial")
    attempts = 0

    async def flaky() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("upstream down")
        return "partial"

    with pytest.raises(RuntimeError):
        await dedup.run("key", flaky)
    assert await dedup.run("key", flaky) == "partial"
    assert await dedup.run("key", flaky) == "partial"
    assert attempts == 3
    assert dedup.pending() == 0


@pytest.mark.asyncio
async def test_last_waiter_cancelling_cancels_shared_work() -> None:
    dedup: RequestDeduplicator[str] = RequestDeduplicator(TtlCache(60))
    cancelled = False

    async def slow() -> str:
        nonlocal cancelled
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled = True
            raise
        return "never"

    waiter = asyncio.ensure_future(dedup.run("key", slow))
    for _ in range(3):
        await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    for _ in range(3):
        await asyncio.sleep(0)

    assert cancelled
    assert dedup.pending() == 0
