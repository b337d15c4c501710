"""
Tests for the background cache janitor.
"""

import asyncio

import pytest

from tiered_cache.core.cleanup import CacheJanitor


class TestCacheJanitor:
    """Periodic expiry sweep."""

    @pytest.fixture
    def enabled_settings(self, settings):
        return settings.model_copy(update={"janitor_enabled": True, "janitor_interval": 0.01})

    @pytest.mark.asyncio
    async def test_run_once_sweeps_memory(self, cache, settings, clock):
        await cache.set("old", 1, ttl_seconds=1)
        await cache.set("fresh", 2, ttl_seconds=100)
        clock.advance(5)

        results = CacheJanitor(cache, settings).run_once()

        assert results == {"memory": 1, "durable": 0}
        assert list(cache.memory_cache) == ["fresh"]
        assert cache.get_stats()["durable"] == 2

    @pytest.mark.asyncio
    async def test_run_once_sweeps_durable_when_configured(self, cache, settings, clock):
        await cache.set("old", 1, ttl_seconds=1)
        clock.advance(5)
        sweeping = settings.model_copy(update={"janitor_sweep_durable": True})

        results = CacheJanitor(cache, sweeping).run_once()

        assert results == {"memory": 1, "durable": 1}
        assert cache.get_stats() == {"memory": 0, "durable": 0}

    @pytest.mark.asyncio
    async def test_disabled_janitor_never_starts(self, cache, settings):
        janitor = CacheJanitor(cache, settings)

        await janitor.start()

        assert not janitor.is_running
        assert janitor._task is None
        await janitor.stop()

    @pytest.mark.asyncio
    async def test_background_loop_removes_expired_entries(self, cache, enabled_settings, clock):
        await cache.set("old", 1, ttl_seconds=1)
        clock.advance(5)
        janitor = CacheJanitor(cache, enabled_settings)

        await janitor.start()
        try:
            for _ in range(100):
                if not cache.memory_cache:
                    break
                await asyncio.sleep(0.01)
        finally:
            await janitor.stop()

        assert cache.memory_cache == {}
        assert not janitor.is_running
        assert janitor._task is None

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, cache, enabled_settings):
        janitor = CacheJanitor(cache, enabled_settings)

        await janitor.start()
        task = janitor._task
        await janitor.start()

        assert janitor._task is task
        await janitor.stop()

    @pytest.mark.asyncio
    async def test_loop_survives_sweep_errors(self, cache, enabled_settings, monkeypatch):
        calls = []

        def broken_cleanup():
            calls.append(1)
            raise RuntimeError("boom")

        monkeypatch.setattr(cache, "cleanup_expired", broken_cleanup)
        janitor = CacheJanitor(cache, enabled_settings)

        await janitor.start()
        try:
            for _ in range(100):
                if len(calls) >= 2:
                    break
                await asyncio.sleep(0.01)
        finally:
            await janitor.stop()

        assert len(calls) >= 2
