"""
Tests for the read-through helper.
"""

import asyncio

import pytest


class CountingFetcher:
    """Async fetcher that records how often it ran."""

    def __init__(self, value=None, error=None, delay=False):
        self.calls = 0
        self.value = value
        self.error = error
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.value if self.value is not None else {"call": self.calls}


class TestWithCache:
    """Read-through semantics."""

    @pytest.mark.asyncio
    async def test_fetches_once_per_miss(self, cache):
        fetcher = CountingFetcher()

        first = await cache.with_cache("dashboard", fetcher)
        second = await cache.with_cache("dashboard", fetcher)

        assert fetcher.calls == 1
        assert first == second == {"call": 1}

    @pytest.mark.asyncio
    async def test_result_stored_with_options(self, cache, store, clock):
        fetcher = CountingFetcher(value=[1, 2])

        await cache.with_cache("k", fetcher, ttl_seconds=30, use_durable=False)

        assert cache.memory_cache["k"].expires_at == clock.now + 30
        assert store.get_item("app_cache_k") is None

    @pytest.mark.asyncio
    async def test_refetches_after_expiry(self, cache, clock):
        fetcher = CountingFetcher()

        await cache.with_cache("k", fetcher, ttl_seconds=10)
        clock.advance(10)
        result = await cache.with_cache("k", fetcher, ttl_seconds=10)

        assert fetcher.calls == 2
        assert result == {"call": 2}

    @pytest.mark.asyncio
    async def test_fetcher_failure_not_cached(self, cache):
        error = RuntimeError("rate limited")
        failing = CountingFetcher(error=error)

        with pytest.raises(RuntimeError) as exc_info:
            await cache.with_cache("k", failing)
        assert exc_info.value is error
        assert cache.get_stats() == {"memory": 0, "durable": 0}

        succeeding = CountingFetcher(value="ok")
        assert await cache.with_cache("k", succeeding) == "ok"
        assert succeeding.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_each_fetch(self, cache):
        fetcher = CountingFetcher(delay=True)

        results = await asyncio.gather(
            cache.with_cache("k", fetcher),
            cache.with_cache("k", fetcher),
        )

        assert fetcher.calls == 2
        assert await cache.get("k") == results[1]

    @pytest.mark.asyncio
    async def test_cancelled_fetch_not_cached(self, cache):
        started = asyncio.Event()

        async def slow_fetch():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(cache.with_cache("k", slow_fetch))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert await cache.get("k") is None
