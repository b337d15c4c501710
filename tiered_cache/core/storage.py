"""Durable key-value storage for the second cache tier.

SQLite stands in for browser localStorage: synchronous, string-only, and
bounded by a byte quota so callers must handle a failed write.
"""

import logging
from contextlib import contextmanager
from typing import List, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from tiered_cache.core.config import CacheSettings
from tiered_cache.core.exceptions import StorageError, StorageQuotaExceeded
from tiered_cache.core.logging import get_logger
from tiered_cache.models.cache import StorageRecord

logger = get_logger(__name__)


class DurableStore(Protocol):
    """Synchronous, fallible key -> string store."""

    def startup(self) -> None:
        ...

    def shutdown(self) -> None:
        ...

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def length(self) -> int:
        ...

    def keys(self) -> List[str]:
        ...


class SQLiteStore:
    """SQLModel-backed durable store with a finite byte quota.

    Usage:
        store = SQLiteStore(settings)
        store.startup()
        store.set_item("app_cache_user:1", '{"data": 1, ...}')
    """

    def __init__(self, settings: CacheSettings):
        self.settings = settings
        self.max_bytes = settings.durable_max_bytes
        self.engine = None

    def startup(self) -> None:
        """Create the engine and the storage table."""
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

        url = self.settings.durable_url
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            self.engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(url, connect_args={"check_same_thread": False})

        try:
            SQLModel.metadata.create_all(self.engine, tables=[StorageRecord.__table__])
        except SQLAlchemyError as e:
            logger.error("Durable store startup failed", url=url, error=str(e))
            raise StorageError(f"Cannot initialize durable store: {e}") from e

        logger.info("Durable store initialized", url=url, max_bytes=self.max_bytes)

    def shutdown(self) -> None:
        """Dispose of pooled connections."""
        if self.engine:
            self.engine.dispose()
            self.engine = None
            logger.info("Durable store closed")

    @contextmanager
    def _session(self):
        if self.engine is None:
            raise StorageError("Durable store not initialized")

        with Session(self.engine) as session:
            try:
                yield session
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(str(e)) from e

    def get_item(self, key: str) -> Optional[str]:
        with self._session() as session:
            record = session.get(StorageRecord, key)
            return record.value if record else None

    def set_item(self, key: str, value: str) -> None:
        """Store a value, raising StorageQuotaExceeded if it does not fit."""
        with self._session() as session:
            existing = session.get(StorageRecord, key)
            used = self._used_bytes(session)
            if existing:
                used -= len(existing.key) + len(existing.value)

            required = used + len(key) + len(value)
            if required > self.max_bytes:
                raise StorageQuotaExceeded(self.max_bytes, required)

            if existing:
                existing.value = value
            else:
                session.add(StorageRecord(key=key, value=value))
            session.commit()

    def remove_item(self, key: str) -> None:
        with self._session() as session:
            record = session.get(StorageRecord, key)
            if record:
                session.delete(record)
                session.commit()

    def length(self) -> int:
        with self._session() as session:
            return session.exec(select(func.count()).select_from(StorageRecord)).one()

    def keys(self) -> List[str]:
        with self._session() as session:
            return list(session.exec(select(StorageRecord.key).order_by(StorageRecord.key)).all())

    def size_bytes(self) -> int:
        """Total key + value length currently stored."""
        with self._session() as session:
            return self._used_bytes(session)

    @staticmethod
    def _used_bytes(session: Session) -> int:
        total = session.exec(
            select(func.coalesce(
                func.sum(func.length(StorageRecord.key) + func.length(StorageRecord.value)), 0
            ))
        ).one()
        return int(total)
