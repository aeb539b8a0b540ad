import aiosqlite


class PlatformStatsRepo:
    """Single-row platform counters shown on the home screen."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self) -> dict:
        async with self._db.execute(
            "SELECT total_paid, total_users FROM platform_stats WHERE id = 1"
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return {"total_paid": 0.0, "total_users": 0}
        return {"total_paid": round(row[0], 4), "total_users": row[1]}

    async def add_paid(self, amount: float):
        await self._db.execute(
            "UPDATE platform_stats SET total_paid = total_paid + ? WHERE id = 1", (amount,)
        )

    async def add_user(self):
        await self._db.execute(
            "UPDATE platform_stats SET total_users = total_users + 1 WHERE id = 1"
        )
