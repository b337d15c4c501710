"""Dependency injection container for the cache services."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from dependency_injector import containers, providers

from tiered_cache.core.config import CacheSettings
from tiered_cache.core.storage import SQLiteStore
from tiered_cache.core.cache import TieredCache
from tiered_cache.core.cleanup import CacheJanitor
from tiered_cache.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


class Container(containers.DeclarativeContainer):
    """One settings / store / cache / janitor per process."""

    settings = providers.Singleton(
        CacheSettings,
    )

    # Durable tier (SQLite, quota-bounded)
    store = providers.Singleton(
        SQLiteStore,
        settings=settings
    )

    cache = providers.Singleton(
        TieredCache,
        settings=settings,
        store=store
    )

    janitor = providers.Singleton(
        CacheJanitor,
        cache=cache,
        settings=settings
    )


@asynccontextmanager
async def cache_lifespan(container: Container) -> AsyncIterator[TieredCache]:
    """Start the cache and its janitor, yield the cache, then tear both down.

    Usage:
        container = Container()
        async with cache_lifespan(container) as cache:
            report = await cache.with_cache("dashboard:1", build_report)
    """
    settings = container.settings()
    configure_logging(settings)

    cache = container.cache()
    janitor = container.janitor()
    cache.startup()
    await janitor.start()
    logger.info("Cache services started")
    try:
        yield cache
    finally:
        await janitor.stop()
        cache.shutdown()
        logger.info("Cache services shutdown complete")
