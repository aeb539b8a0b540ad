import json
import time
from typing import List, Optional

import aiosqlite


class ActivityLogRepo:
    """Append-only admin activity log."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def record(
        self,
        action: str,
        admin_id: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        await self._db.execute(
            "INSERT INTO activity_logs (admin_id, action, target_id, details, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (admin_id, action, target_id, json.dumps(details or {}), time.time()),
        )

    async def list_recent(self, limit: int = 100, target_id: Optional[str] = None) -> List[dict]:
        query = "SELECT id, admin_id, action, target_id, details, created_at FROM activity_logs"
        params: tuple = ()
        if target_id is not None:
            query += " WHERE target_id = ?"
            params = (target_id,)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params += (limit,)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "admin_id": row[1],
                    "action": row[2],
                    "target_id": row[3],
                    "details": json.loads(row[4]) if row[4] else {},
                    "created_at": row[5],
                })
        return results
