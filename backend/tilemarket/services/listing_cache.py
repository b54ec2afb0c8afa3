"""
Injected cache collaborators for store listings and parsed documents.

The reconciliation services never own cached state; the application builds a
cache and hands it to the walker and resolver. Values must be JSON-serializable.
Entries older than the TTL read as misses.
"""

import json
import time
from collections.abc import Callable
from typing import Any, Optional, Protocol

import aiosqlite

from tilemarket.logging import get_logger

logger = get_logger('services.listing_cache')


class ListingCache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def invalidate(self, key: str) -> None: ...


class NullListingCache:
    """Caches nothing; every read is a miss."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any) -> None:
        return None

    async def invalidate(self, key: str) -> None:
        return None


class InMemoryListingCache:
    """Process-local TTL cache."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if self._clock() - stored_at > self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any) -> None:
        # stored serialized so callers never share mutable values
        self._entries[key] = (self._clock(), json.dumps(value))

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)


class SqliteListingCache:
    """TTL cache persisted in the cache database (see ``init_cache_db``)."""

    def __init__(self, db_path: str, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    async def _get_db(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path)
        db.row_factory = aiosqlite.Row
        return db

    async def get(self, key: str) -> Optional[Any]:
        db = await self._get_db()
        try:
            cursor = await db.execute(
                "SELECT value_json, stored_at FROM listing_cache WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
            if not row:
                return None
            if self._clock() - float(row["stored_at"]) > self.ttl_seconds:
                await db.execute("DELETE FROM listing_cache WHERE key = ?", (key,))
                await db.commit()
                return None
            return json.loads(row["value_json"])
        finally:
            await db.close()

    async def set(self, key: str, value: Any) -> None:
        db = await self._get_db()
        try:
            await db.execute(
                """INSERT INTO listing_cache (key, value_json, stored_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json,
                                                  stored_at = excluded.stored_at""",
                (key, json.dumps(value), self._clock()),
            )
            await db.commit()
        finally:
            await db.close()

    async def invalidate(self, key: str) -> None:
        db = await self._get_db()
        try:
            await db.execute("DELETE FROM listing_cache WHERE key = ?", (key,))
            await db.commit()
        finally:
            await db.close()
        logger.debug("Invalidated cache key %s", key)
