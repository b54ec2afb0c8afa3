"""
Cache database connection and initialization.
"""

import aiosqlite
from pathlib import Path
from tilemarket.config import settings
from tilemarket.logging import get_logger

logger = get_logger('database')

CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS listing_cache (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    stored_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_listing_cache_stored ON listing_cache(stored_at);
"""


async def init_cache_db(db_path: str | None = None) -> str:
    """
    Initialize the cache database with its schema.

    :param db_path: Database file; defaults to CACHE_DATABASE_PATH
    :type db_path: str | None
    :return: The initialized database path
    :rtype: str
    """
    path = Path(db_path or settings.CACHE_DATABASE_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(path) as db:
        await db.executescript(CACHE_SCHEMA)
        await db.commit()
        logger.info(f"Cache database initialized at {path}")
    return str(path)
