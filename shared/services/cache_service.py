"""
TTL key-value cache backed by the cache_entries table.

Entries expire passively: an expired row is treated as absent and removed on
the next read of its key.
"""
import json
import logging
from typing import Any, Callable, Optional
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import CacheEntry
from shared.utils.clock import now_ms

logger = logging.getLogger(__name__)


class CacheService:
    """get/put with a per-entry time-to-live."""

    def __init__(self, db: DBSession, clock: Callable[[], int] = now_ms):
        self.db = db
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value for a key.

        Args:
            key: Cache key

        Returns:
            Decoded JSON value, or None if absent or expired
        """
        entry = self.db.query(CacheEntry).filter(CacheEntry.key == key).first()
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            logger.info(f"Cache entry expired: {key}")
            self.db.delete(entry)
            self.db.commit()
            return None
        return json.loads(entry.value_json)

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        """
        Store a JSON-serializable value, replacing any existing entry.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl_seconds: Lifetime in seconds
        """
        expires_at = self.clock() + ttl_seconds * 1000
        entry = self.db.query(CacheEntry).filter(CacheEntry.key == key).first()
        if entry is None:
            entry = CacheEntry(key=key, value_json=json.dumps(value), expires_at=expires_at)
            self.db.add(entry)
        else:
            entry.value_json = json.dumps(value)
            entry.expires_at = expires_at
        self.db.commit()

    def purge_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        removed = (
            self.db.query(CacheEntry)
            .filter(CacheEntry.expires_at <= self.clock())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return removed
