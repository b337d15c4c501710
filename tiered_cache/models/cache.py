"""Cache entry wrapper and the SQLite-backed durable storage record.

The durable tier mirrors browser localStorage: a flat table of string keys to
string values. The cache owns serialization of entries into those strings.
"""

import json
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlmodel import SQLModel, Field

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """One cached value with its creation and absolute expiry instants.

    Timestamps are epoch seconds in memory and epoch milliseconds in the
    serialized durable record.
    """
    data: T
    expires_at: float
    created_at: float

    @classmethod
    def create(cls, data: T, ttl_seconds: float, now: float) -> "CacheEntry[T]":
        return cls(data=data, expires_at=now + ttl_seconds, created_at=now)

    def is_live(self, now: float) -> bool:
        return now < self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds left before expiry (negative once expired)."""
        return self.expires_at - now

    def to_json(self) -> str:
        return json.dumps({
            "data": self.data,
            "createdAt": int(self.created_at * 1000),
            "expiresAt": int(self.expires_at * 1000),
        })

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry[Any]":
        """Parse a durable record.

        Raises:
            ValueError: The record is not valid JSON or lacks numeric
                timestamps.
        """
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise ValueError(f"Unparseable cache record: {e}") from e

        if not isinstance(payload, dict) or "data" not in payload:
            raise ValueError("Cache record is not an entry object")

        expires_at = payload.get("expiresAt")
        created_at = payload.get("createdAt", expires_at)
        for stamp in (expires_at, created_at):
            if isinstance(stamp, bool) or not isinstance(stamp, (int, float)):
                raise ValueError("Cache record has no numeric timestamps")

        return cls(
            data=payload["data"],
            expires_at=expires_at / 1000,
            created_at=created_at / 1000,
        )


class StorageRecord(SQLModel, table=True):
    """Key-value row of the durable tier."""

    __tablename__ = "durable_storage"

    key: str = Field(primary_key=True, max_length=512)
    value: str = Field(max_length=10000000)
