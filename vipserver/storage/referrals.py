import time
from typing import List

import aiosqlite


class ReferralRepo:
    """Referral tree edges and the commissions paid along them."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def add(self, referrer_id: str, referred_id: str, level: int):
        await self._db.execute(
            "INSERT OR IGNORE INTO referrals (referrer_id, referred_id, level, created_at) "
            "VALUES (?, ?, ?, ?)",
            (referrer_id, referred_id, level, time.time()),
        )

    async def ancestors(self, referred_id: str) -> List[dict]:
        """Referrers above ``referred_id``, nearest first."""
        results = []
        async with self._db.execute(
            "SELECT referrer_id, level FROM referrals WHERE referred_id = ? ORDER BY level",
            (referred_id,),
        ) as cursor:
            async for row in cursor:
                results.append({"referrer_id": row[0], "level": row[1]})
        return results

    async def list_direct(self, referrer_id: str) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT r.id, r.referred_id, p.username, p.vip_level, r.created_at, "
            "COALESCE((SELECT SUM(c.commission_amount) FROM referral_commissions c "
            "          WHERE c.referrer_id = r.referrer_id AND c.referred_id = r.referred_id), 0) "
            "FROM referrals r LEFT JOIN profiles p ON p.user_id = r.referred_id "
            "WHERE r.referrer_id = ? AND r.level = 1 ORDER BY r.created_at DESC",
            (referrer_id,),
        ) as cursor:
            async for row in cursor:
                results.append({
                    "id": row[0],
                    "referred_id": row[1],
                    "username": row[2] or "",
                    "vip_level": row[3] or 0,
                    "created_at": row[4],
                    "total_commission": round(row[5], 4),
                })
        return results

    async def record_commission(
        self,
        referrer_id: str,
        referred_id: str,
        deposit_id: str,
        level: int,
        rate: float,
        amount: float,
    ):
        await self._db.execute(
            "INSERT INTO referral_commissions (referrer_id, referred_id, deposit_id, level, "
            "commission_rate, commission_amount, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (referrer_id, referred_id, deposit_id, level, rate, amount, time.time()),
        )

    async def commissions_for(self, referrer_id: str) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT level, commission_amount FROM referral_commissions WHERE referrer_id = ?",
            (referrer_id,),
        ) as cursor:
            async for row in cursor:
                results.append({"level": row[0], "commission_amount": row[1]})
        return results

    async def count_by_level(self, referrer_id: str) -> dict:
        counts = {}
        async with self._db.execute(
            "SELECT level, COUNT(*) FROM referrals WHERE referrer_id = ? GROUP BY level",
            (referrer_id,),
        ) as cursor:
            async for row in cursor:
                counts[row[0]] = row[1]
        return counts
