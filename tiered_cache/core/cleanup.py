"""Periodic janitor for the tiered cache.

Lazy expiry on read already keeps stale data out of results; the janitor
only keeps the memory tier (and optionally the durable store) tidy.
"""
import asyncio
from typing import Dict, Optional, TYPE_CHECKING

from tiered_cache.core.logging import get_logger

if TYPE_CHECKING:
    from tiered_cache.core.config import CacheSettings
    from tiered_cache.core.cache import TieredCache

logger = get_logger(__name__)


class CacheJanitor:
    """Background sweep of expired cache entries."""

    def __init__(self, cache: "TieredCache", settings: "CacheSettings"):
        self.cache = cache
        self.settings = settings
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the janitor background task."""
        if not self.settings.janitor_enabled:
            logger.info("Cache janitor disabled")
            return
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "Cache janitor started",
            interval=self.settings.janitor_interval,
            sweep_durable=self.settings.janitor_sweep_durable
        )

    async def stop(self) -> None:
        """Stop the janitor gracefully."""
        if not self._task:
            return
        self._running = False
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache janitor stopped")

    async def _cleanup_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.settings.janitor_interval)
            try:
                self.run_once()
            except Exception as e:
                logger.error("Cache janitor sweep failed", error=str(e))

    def run_once(self) -> Dict[str, int]:
        """Run one sweep and return counts removed per tier."""
        results = {"memory": self.cache.cleanup_expired(), "durable": 0}
        if self.settings.janitor_sweep_durable:
            results["durable"] = self.cache.cleanup_durable()

        if sum(results.values()) > 0:
            logger.info("Cache janitor sweep completed", **results)
        return results
