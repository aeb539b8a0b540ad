import json
import logging
import time
from typing import Any, Dict

import aiosqlite

logger = logging.getLogger("storage")


class SettingsRepo:
    """Key -> JSON value store behind the admin settings screen."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get_all(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        async with self._db.execute("SELECT key, value FROM admin_settings") as cursor:
            async for row in cursor:
                try:
                    result[row[0]] = json.loads(row[1])
                except ValueError:
                    logger.warning("Ignoring malformed admin setting %s=%r", row[0], row[1])
        return result

    async def set(self, key: str, value: Any):
        await self._db.execute(
            "INSERT INTO admin_settings (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, json.dumps(value), time.time()),
        )
