from typing import List, Optional

import aiosqlite


class DailyClaimRepo:
    """Daily claim records; the latest row drives the next-claim time."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(self, user_id: str, vip_level: int, amount: float, created_at: float) -> int:
        cursor = await self._db.execute(
            "INSERT INTO daily_claims (user_id, vip_level, amount, created_at) VALUES (?, ?, ?, ?)",
            (user_id, vip_level, amount, created_at),
        )
        return cursor.lastrowid

    async def latest(self, user_id: str) -> Optional[dict]:
        async with self._db.execute(
            "SELECT id, user_id, vip_level, amount, created_at FROM daily_claims "
            "WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1",
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return {
            "id": row[0],
            "user_id": row[1],
            "vip_level": row[2],
            "amount": row[3],
            "created_at": row[4],
        }

    async def list_for_user(self, user_id: str, limit: int = 30) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT id, user_id, vip_level, amount, created_at FROM daily_claims "
            "WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "user_id": row[1],
                    "vip_level": row[2],
                    "amount": row[3],
                    "created_at": row[4],
                })
        return results
