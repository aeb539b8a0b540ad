"""
referrals.py - Referral tree and commissions.

A new user who signs up with a referral code is linked to up to three
ancestors. Confirmed deposits pay each ancestor a fixed share of the amount.
"""

import logging
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from vipserver.storage import StorageManager

logger = logging.getLogger("referrals")

COMMISSION_RATES: Dict[int, float] = {1: 0.08, 2: 0.03, 3: 0.01}
MAX_DEPTH = len(COMMISSION_RATES)


class ReferralService:
    def __init__(self, storage: "StorageManager"):
        self._storage = storage

    async def link(self, user_id: str, referrer_id: str):
        """Record the referrer chain for a new user.

        Runs inside the caller's transaction.
        """
        await self._storage.referrals.add(referrer_id, user_id, 1)
        for ancestor in await self._storage.referrals.ancestors(referrer_id):
            level = ancestor["level"] + 1
            if level > MAX_DEPTH:
                break
            await self._storage.referrals.add(ancestor["referrer_id"], user_id, level)

    async def distribute_commission(self, user_id: str, deposit_id: str, amount: float) -> float:
        """Credit the ancestors of ``user_id`` for a confirmed deposit.

        Runs inside the caller's transaction. Returns the total paid out.
        """
        paid = 0.0
        for ancestor in await self._storage.referrals.ancestors(user_id):
            rate = COMMISSION_RATES.get(ancestor["level"])
            if rate is None:
                continue
            commission = round(amount * rate, 4)
            if commission <= 0:
                continue
            referrer_id = ancestor["referrer_id"]
            await self._storage.profiles.adjust(
                referrer_id, balance_delta=commission, earned_delta=commission,
            )
            await self._storage.transactions.record(
                referrer_id, "commission", commission,
                description=f"Level {ancestor['level']} referral commission",
                reference_id=deposit_id,
            )
            await self._storage.referrals.record_commission(
                referrer_id, user_id, deposit_id, ancestor["level"], rate, commission,
            )
            logger.info("Commission %.4f to %s (level %d) for deposit %s",
                        commission, referrer_id, ancestor["level"], deposit_id)
            paid += commission
        return paid

    async def summary(self, user_id: str, referral_code: Optional[str] = None) -> dict:
        levels = {
            level: {"count": 0, "total_commission": 0.0, "rate": rate}
            for level, rate in COMMISSION_RATES.items()
        }
        for row in await self._storage.referrals.commissions_for(user_id):
            if row["level"] in levels:
                levels[row["level"]]["total_commission"] += row["commission_amount"]

        for level, count in (await self._storage.referrals.count_by_level(user_id)).items():
            if level in levels:
                levels[level]["count"] = count

        direct = await self._storage.referrals.list_direct(user_id)
        for entry in levels.values():
            entry["total_commission"] = round(entry["total_commission"], 4)
        return {
            "referral_code": referral_code,
            "levels": {str(k): v for k, v in levels.items()},
            "total_commission": round(sum(v["total_commission"] for v in levels.values()), 4),
            "total_referrals": sum(v["count"] for v in levels.values()),
            "direct": direct,
        }
