"""Database connection and schema management."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Optional

import aiosqlite

from yearsync.config import get_settings

logger = logging.getLogger(__name__)

# Global database connection
_db_connection: Optional[aiosqlite.Connection] = None
_db_lock = asyncio.Lock()


SCHEMA = """
-- Local key/value settings (sync opt-out flag, device id, ...)
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value_plain TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Local preference stores, one JSON value per store
CREATE TABLE IF NOT EXISTS preferences (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Audit log of cloud sync operations
CREATE TABLE IF NOT EXISTS sync_log (
    id INTEGER PRIMARY KEY,
    action TEXT NOT NULL,
    status TEXT NOT NULL,
    details TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sync_log_created ON sync_log(created_at);
"""


async def get_database() -> aiosqlite.Connection:
    """Get the database connection, creating it if necessary."""
    global _db_connection

    async with _db_lock:
        if _db_connection is None:
            settings = get_settings()
            _db_connection = await aiosqlite.connect(settings.database_path)
            _db_connection.row_factory = aiosqlite.Row
            await _db_connection.execute("PRAGMA journal_mode = WAL")
            await init_schema(_db_connection)
        return _db_connection


async def init_schema(db: aiosqlite.Connection) -> None:
    """Initialize database schema."""
    await db.executescript(SCHEMA)
    await db.commit()
    logger.info("Database schema initialized")


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    async with _db_lock:
        if _db_connection is not None:
            await _db_connection.close()
            _db_connection = None
            logger.info("Database connection closed")


async def get_setting(key: str) -> Optional[dict]:
    """Get a setting by key."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM settings WHERE key = ?", (key,)
    )
    row = await cursor.fetchone()
    if row:
        return dict(row)
    return None


async def set_setting(key: str, value: str) -> None:
    """Set a setting value."""
    db = await get_database()
    now = datetime.utcnow().isoformat()
    await db.execute(
        """INSERT INTO settings (key, value_plain, updated_at)
           VALUES (?, ?, ?)
           ON CONFLICT(key) DO UPDATE SET
           value_plain = excluded.value_plain,
           updated_at = excluded.updated_at""",
        (key, value, now)
    )
    await db.commit()


async def get_preference(key: str) -> Optional[Any]:
    """Get a decoded preference value, or None if it was never stored."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT value_json FROM preferences WHERE key = ?", (key,)
    )
    row = await cursor.fetchone()
    if not row:
        return None
    try:
        return json.loads(row["value_json"])
    except json.JSONDecodeError:
        logger.warning(f"Discarding unreadable preference '{key}'")
        await db.execute("DELETE FROM preferences WHERE key = ?", (key,))
        await db.commit()
        return None


async def set_preference(key: str, value: Any) -> None:
    """Store a preference value as JSON."""
    db = await get_database()
    now = datetime.utcnow().isoformat()
    await db.execute(
        """INSERT INTO preferences (key, value_json, updated_at)
           VALUES (?, ?, ?)
           ON CONFLICT(key) DO UPDATE SET
           value_json = excluded.value_json,
           updated_at = excluded.updated_at""",
        (key, json.dumps(value), now)
    )
    await db.commit()


async def log_sync_event(action: str, status: str, details: Optional[str] = None) -> None:
    """Append an entry to the sync audit log and trim old entries."""
    db = await get_database()
    await db.execute(
        "INSERT INTO sync_log (action, status, details) VALUES (?, ?, ?)",
        (action, status, details)
    )
    await db.execute(
        """DELETE FROM sync_log WHERE id NOT IN (
               SELECT id FROM sync_log ORDER BY id DESC LIMIT ?
           )""",
        (get_settings().sync_log_retention_entries,)
    )
    await db.commit()


async def get_sync_log(limit: int = 50) -> list[dict]:
    """Get the most recent sync audit entries, newest first."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM sync_log ORDER BY id DESC LIMIT ?", (limit,)
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]
