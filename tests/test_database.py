"""Tests for database operations."""

import pytest

from yearsync.config import get_settings


@pytest.mark.asyncio
async def test_database_schema(test_db):
    """Database should create the expected tables."""
    cursor = await test_db.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    assert {"settings", "preferences", "sync_log"} <= tables


@pytest.mark.asyncio
async def test_settings_operations(test_db):
    """Test settings CRUD operations."""
    from yearsync.database import get_setting, set_setting

    assert await get_setting("missing") is None

    await set_setting("sync_explicitly_disabled", "true")
    setting = await get_setting("sync_explicitly_disabled")
    assert setting["value_plain"] == "true"

    await set_setting("sync_explicitly_disabled", "false")
    setting = await get_setting("sync_explicitly_disabled")
    assert setting["value_plain"] == "false"


@pytest.mark.asyncio
async def test_preference_round_trip(test_db):
    from yearsync.database import get_preference, set_preference

    assert await get_preference("filters") is None

    await set_preference("filters", [{"id": "f1", "pattern": "gym", "createdAt": 1}])

    assert await get_preference("filters") == [{"id": "f1", "pattern": "gym", "createdAt": 1}]


@pytest.mark.asyncio
async def test_corrupt_preference_is_discarded(test_db):
    from yearsync.database import get_preference

    await test_db.execute(
        "INSERT INTO preferences (key, value_json) VALUES (?, ?)",
        ("categories", "{not json"),
    )
    await test_db.commit()

    assert await get_preference("categories") is None

    cursor = await test_db.execute("SELECT COUNT(*) FROM preferences WHERE key = 'categories'")
    assert (await cursor.fetchone())[0] == 0


@pytest.mark.asyncio
async def test_sync_log_is_trimmed_and_newest_first(test_db, monkeypatch):
    from yearsync.database import get_sync_log, log_sync_event

    monkeypatch.setattr(get_settings(), "sync_log_retention_entries", 3)

    for i in range(5):
        await log_sync_event("write", "success", f"entry {i}")

    entries = await get_sync_log()

    assert [entry["details"] for entry in entries] == ["entry 4", "entry 3", "entry 2"]
    assert entries[0]["action"] == "write"


@pytest.mark.asyncio
async def test_sync_log_limit(test_db):
    from yearsync.database import get_sync_log, log_sync_event

    await log_sync_event("load", "success")
    await log_sync_event("write", "error", "Backend Error")

    entries = await get_sync_log(limit=1)

    assert len(entries) == 1
    assert entries[0]["status"] == "error"
