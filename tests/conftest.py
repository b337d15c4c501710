"""Shared fixtures for cache tests."""

import pytest

from tiered_cache.core.config import CacheSettings
from tiered_cache.core.storage import SQLiteStore
from tiered_cache.core.cache import TieredCache


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """In-memory durable store, small memory tier, janitor off."""
    return CacheSettings(
        durable_url="sqlite://",
        memory_max_size=3,
        janitor_enabled=False,
    )


@pytest.fixture
def store(settings):
    store = SQLiteStore(settings)
    store.startup()
    yield store
    store.shutdown()


@pytest.fixture
def cache(settings, store, clock):
    return TieredCache(settings, store=store, clock=clock)
