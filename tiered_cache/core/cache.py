"""Tiered application cache.

Level 1: in-memory dict (fastest, lost on restart, size-bounded)
Level 2: durable key-value store (survives restarts, byte-quota bounded)

Reads fall through memory -> durable and promote durable hits back into
memory with their remaining TTL. Writes always land in memory and, unless
disabled, in the durable store as well.
"""

import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, TYPE_CHECKING

from tiered_cache.core.config import CacheSettings
from tiered_cache.core.exceptions import StorageError
from tiered_cache.core.logging import get_logger, log_cache_operation
from tiered_cache.models.cache import CacheEntry

if TYPE_CHECKING:
    from tiered_cache.core.storage import DurableStore

logger = get_logger(__name__)

T = TypeVar("T")


def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Translate a `*` glob into a regex matching whole keys.

    Every character other than `*` is literal, so a pattern without a
    wildcard matches exactly one key.
    """
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")), re.DOTALL)


class TieredCache:
    """Two-tier TTL cache with pattern invalidation and read-through.

    Construct once at process start and pass it to consumers:

        cache = TieredCache(settings, store=SQLiteStore(settings))
        cache.startup()
        stats = await cache.with_cache("dashboard:42", load_dashboard, ttl_seconds=60)

    Without a store (or with use_durable disabled) the cache is memory-only.
    """

    def __init__(self, settings: CacheSettings,
                 store: Optional["DurableStore"] = None,
                 clock: Callable[[], float] = time.time):
        self.settings = settings
        self.store = store if settings.use_durable else None
        self.prefix = settings.key_prefix
        self.max_size = settings.memory_max_size
        self.memory_cache: Dict[str, CacheEntry[Any]] = {}
        self._clock = clock

    def startup(self) -> None:
        """Prepare the durable tier."""
        if self.store is not None:
            self.store.startup()
        logger.info("Tiered cache initialized",
                    memory_max_size=self.max_size,
                    durable=self.store is not None,
                    prefix=self.prefix)

    def shutdown(self) -> None:
        """Drop the memory tier and release the durable store."""
        self.memory_cache.clear()
        if self.store is not None:
            self.store.shutdown()

    def _durable_enabled(self, use_durable: Optional[bool]) -> bool:
        if self.store is None:
            return False
        return self.settings.use_durable if use_durable is None else use_durable

    # ============================================================================
    # Read / write
    # ============================================================================

    async def get(self, key: str, use_durable: Optional[bool] = None) -> Optional[Any]:
        """Get cached data, falling back through the tiers.

        Returns None on a miss. Durable-tier faults are treated as misses.
        """
        if not key:
            raise ValueError("Cache key must be a non-empty string")
        now = self._clock()

        # Level 1: memory
        entry = self.memory_cache.get(key)
        if entry is not None:
            if entry.is_live(now):
                log_cache_operation(logger, "get", key, hit=True, tier="memory")
                return entry.data
            del self.memory_cache[key]

        # Level 2: durable store
        if self._durable_enabled(use_durable):
            entry = self._read_durable(key, now)
            if entry is not None:
                self._set_memory(key, entry.data, entry.remaining(now), now)
                log_cache_operation(logger, "get", key, hit=True, tier="durable")
                return entry.data

        log_cache_operation(logger, "get", key, hit=False)
        return None

    async def set(self, key: str, data: Any,
                  ttl_seconds: Optional[float] = None,
                  use_durable: Optional[bool] = None) -> None:
        """Cache data in memory and, unless disabled, in the durable store."""
        if not key:
            raise ValueError("Cache key must be a non-empty string")
        ttl = self.settings.default_ttl if ttl_seconds is None else ttl_seconds
        now = self._clock()

        self._set_memory(key, data, ttl, now)

        if self._durable_enabled(use_durable):
            self._write_durable(key, CacheEntry.create(data, ttl, now))

        log_cache_operation(logger, "set", key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        """Remove one exact key from both tiers."""
        deleted = self.memory_cache.pop(key, None) is not None

        if self.store is not None:
            storage_key = self.prefix + key
            try:
                if self.store.get_item(storage_key) is not None:
                    self.store.remove_item(storage_key)
                    deleted = True
            except StorageError as e:
                logger.warning("Cache durable delete failed", key=key, error=str(e))

        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    async def with_cache(self, key: str, fetcher: Callable[[], Awaitable[T]],
                         ttl_seconds: Optional[float] = None,
                         use_durable: Optional[bool] = None) -> T:
        """Return the cached value for key, or fetch, cache and return it.

        Concurrent misses on the same key each call fetcher; the last write
        wins. Fetcher errors propagate and nothing is cached.
        """
        cached = await self.get(key, use_durable=use_durable)
        if cached is not None:
            return cached

        data = await fetcher()
        await self.set(key, data, ttl_seconds=ttl_seconds, use_durable=use_durable)
        return data

    # ============================================================================
    # Invalidation
    # ============================================================================

    async def invalidate(self, pattern: str) -> int:
        """Remove entries whose key matches a `*` glob from both tiers."""
        regex = compile_pattern(pattern)

        matched = [k for k in self.memory_cache if regex.fullmatch(k)]
        for key in matched:
            del self.memory_cache[key]
        removed = len(matched)

        if self.store is not None:
            try:
                for storage_key in self._namespaced_keys():
                    if regex.fullmatch(storage_key[len(self.prefix):]):
                        self.store.remove_item(storage_key)
                        removed += 1
            except StorageError as e:
                logger.warning("Cache durable invalidation failed", pattern=pattern, error=str(e))

        log_cache_operation(logger, "invalidate", pattern, deleted=removed)
        return removed

    async def clear(self) -> None:
        """Drop every memory entry and every namespaced durable record."""
        self.memory_cache.clear()
        if self.store is not None:
            self.cleanup_durable(include_live=True)
        logger.info("Cache cleared")

    def get_stats(self) -> Dict[str, int]:
        """Raw entry counts per tier, expired entries included."""
        durable = 0
        if self.store is not None:
            try:
                durable = len(self._namespaced_keys())
            except StorageError as e:
                logger.warning("Cache durable stats failed", error=str(e))

        return {"memory": len(self.memory_cache), "durable": durable}

    # ============================================================================
    # Expiry sweeps
    # ============================================================================

    def cleanup_expired(self) -> int:
        """Remove expired memory entries. Returns count deleted."""
        now = self._clock()
        expired = [k for k, entry in self.memory_cache.items() if not entry.is_live(now)]
        for key in expired:
            del self.memory_cache[key]

        if expired:
            logger.debug("Cleaned up expired memory entries", count=len(expired))
        return len(expired)

    def cleanup_durable(self, include_live: bool = False) -> int:
        """Remove expired or unparseable namespaced records (every one if include_live)."""
        if self.store is None:
            return 0

        now = self._clock()
        count = 0
        try:
            for storage_key in self._namespaced_keys():
                if not include_live:
                    raw = self.store.get_item(storage_key)
                    try:
                        if raw is None or CacheEntry.from_json(raw).is_live(now):
                            continue
                    except ValueError:
                        pass
                self.store.remove_item(storage_key)
                count += 1
        except StorageError as e:
            logger.warning("Durable cleanup failed", error=str(e), removed=count)

        if count > 0:
            logger.info("Cleaned up durable cache entries", count=count, include_live=include_live)
        return count

    # ============================================================================
    # Tier helpers
    # ============================================================================

    def _set_memory(self, key: str, data: Any, ttl_seconds: float, now: float) -> None:
        # At capacity the oldest inserted entry goes, even when key is being overwritten
        if len(self.memory_cache) >= self.max_size:
            oldest_key = next(iter(self.memory_cache))
            del self.memory_cache[oldest_key]
            log_cache_operation(logger, "evict", oldest_key, max_size=self.max_size)

        self.memory_cache[key] = CacheEntry.create(data, ttl_seconds, now)

    def _read_durable(self, key: str, now: float) -> Optional[CacheEntry[Any]]:
        storage_key = self.prefix + key
        try:
            raw = self.store.get_item(storage_key)
            if raw is None:
                return None

            try:
                entry = CacheEntry.from_json(raw)
            except ValueError as e:
                logger.warning("Discarding corrupt cache record", key=key, error=str(e))
                self.store.remove_item(storage_key)
                return None

            if not entry.is_live(now):
                self.store.remove_item(storage_key)
                return None
            return entry

        except StorageError as e:
            logger.warning("Cache durable read failed", key=key, error=str(e))
            return None

    def _write_durable(self, key: str, entry: CacheEntry[Any]) -> None:
        try:
            self.store.set_item(self.prefix + key, entry.to_json())
        except (StorageError, TypeError, ValueError) as e:
            logger.warning("Cache durable write failed", key=key, error=str(e))
            # A surviving older record would be promoted over the newer memory value
            try:
                self.store.remove_item(self.prefix + key)
            except StorageError as remove_error:
                logger.warning("Cache stale durable record not removed", key=key, error=str(remove_error))
            self.cleanup_durable()

    def _namespaced_keys(self):
        return [k for k in self.store.keys() if k.startswith(self.prefix)]
