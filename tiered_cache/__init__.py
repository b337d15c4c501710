"""Tiered application cache.

Memory -> durable (SQLite) two-tier cache with TTL expiry, pattern
invalidation, read-through fetching and a background janitor.
"""

from tiered_cache.core.config import CacheSettings
from tiered_cache.core.exceptions import StorageError, StorageQuotaExceeded
from tiered_cache.core.storage import DurableStore, SQLiteStore
from tiered_cache.core.cache import TieredCache, compile_pattern
from tiered_cache.core.cleanup import CacheJanitor
from tiered_cache.core.container import Container, cache_lifespan
from tiered_cache.models.cache import CacheEntry, StorageRecord

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "CacheSettings",
    # Errors
    "StorageError",
    "StorageQuotaExceeded",
    # Storage
    "DurableStore",
    "SQLiteStore",
    "CacheEntry",
    "StorageRecord",
    # Cache
    "TieredCache",
    "compile_pattern",
    "CacheJanitor",
    # Wiring
    "Container",
    "cache_lifespan",
]
