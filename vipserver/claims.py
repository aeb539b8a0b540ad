"""
claims.py - Daily profit claim.

A user with VIP level > 0 may claim the level's daily profit once per rolling
24 hours, counted from the previous claim's created_at.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from vipserver import vip
from vipserver.errors import ClaimError

if TYPE_CHECKING:
    from vipserver.storage import StorageManager

logger = logging.getLogger("claims")

CLAIM_INTERVAL = 24 * 3600


def _format_wait(seconds: float) -> str:
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes = rem // 60
    return f"{hours} hour(s) and {minutes} minute(s)"


class DailyClaimService:
    def __init__(self, storage: "StorageManager", clock: Callable[[], float] = time.time):
        self._storage = storage
        self._clock = clock

    async def _next_claim_at(self, user_id: str) -> Optional[float]:
        last = await self._storage.claims.latest(user_id)
        return last["created_at"] + CLAIM_INTERVAL if last else None

    async def status(self, user_id: str) -> dict:
        profile = await self._storage.profiles.get(user_id)
        if profile is None:
            raise KeyError(f"Profile {user_id} not found")
        now = self._clock()
        next_at = await self._next_claim_at(user_id)
        waiting = next_at is not None and now < next_at
        return {
            "vip_level": profile["vip_level"],
            "reward": vip.daily_reward(profile["vip_level"]),
            "can_claim": profile["vip_level"] > 0 and not waiting,
            "next_claim_at": next_at if waiting else None,
        }

    async def claim(self, user_id: str) -> dict:
        async with self._storage.transaction():
            profile = await self._storage.profiles.get(user_id)
            if profile is None:
                raise ClaimError("Please sign in first", code="profile_not_found")
            level = profile["vip_level"]
            reward = vip.daily_reward(level)
            if level <= 0 or reward <= 0:
                raise ClaimError("Upgrade your membership to earn daily profit", code="vip_required")

            now = self._clock()
            next_at = await self._next_claim_at(user_id)
            if next_at is not None and now < next_at:
                raise ClaimError(
                    f"Already claimed, come back in {_format_wait(next_at - now)}",
                    code="already_claimed",
                    next_claim_at=next_at,
                )

            await self._storage.claims.create(user_id, level, reward, now)
            await self._storage.profiles.adjust(
                user_id, balance_delta=reward, earned_delta=reward, challenges_delta=1,
            )
            await self._storage.transactions.record(
                user_id, "daily_reward", reward,
                description=f"Daily reward VIP {level}", created_at=now,
            )

        logger.info("Daily claim: user=%s level=%d reward=%.2f", user_id, level, reward)
        await self._bump_platform_total(reward)
        return {
            "amount": reward,
            "vip_level": level,
            "claimed_at": now,
            "next_claim_at": now + CLAIM_INTERVAL,
        }

    async def _bump_platform_total(self, amount: float):
        try:
            async with self._storage.transaction():
                await self._storage.stats.add_paid(amount)
        except Exception:
            logger.exception("Failed to update platform stats after daily claim")
