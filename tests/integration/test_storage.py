"""
test_storage.py - Schema setup and reopen of an on-disk database.
"""

import pytest

from vipserver.storage import SCHEMA_VERSION, StorageManager

from .conftest import make_profile

pytestmark = pytest.mark.asyncio


async def _versions(storage):
    async with storage._db.execute("SELECT version FROM schema_version") as cursor:
        return [row[0] for row in await cursor.fetchall()]


class TestMigrations:

    async def test_fresh_database_is_stamped(self, storage):
        assert await _versions(storage) == [SCHEMA_VERSION]

    async def test_reopen_keeps_data_and_version(self, tmp_path):
        db_path = str(tmp_path / "platform.db")
        storage = StorageManager(db_path)
        await storage.initialize()
        uid = await make_profile(storage, balance=12.5)
        await storage.close()

        reopened = StorageManager(db_path)
        await reopened.initialize()
        try:
            assert await _versions(reopened) == [SCHEMA_VERSION]
            assert (await reopened.profiles.get(uid))["balance"] == 12.5
        finally:
            await reopened.close()
