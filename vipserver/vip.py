"""
vip.py - Membership levels.

A level is unlocked by paying its price from the spendable balance and sets
the daily claim reward and the daily task quota.
"""

import logging
from dataclasses import dataclass, asdict
from typing import TYPE_CHECKING, Dict, List, Optional

from vipserver.errors import VipError

if TYPE_CHECKING:
    from vipserver.storage import StorageManager

logger = logging.getLogger("vip")


@dataclass(frozen=True)
class VipLevel:
    level: int
    price: float
    daily_profit: float
    daily_tasks: int


VIP_LEVELS: List[VipLevel] = [
    VipLevel(level=0, price=0.0, daily_profit=0.0, daily_tasks=0),
    VipLevel(level=1, price=50.0, daily_profit=1.5, daily_tasks=1),
    VipLevel(level=2, price=200.0, daily_profit=6.5, daily_tasks=2),
    VipLevel(level=3, price=500.0, daily_profit=17.5, daily_tasks=3),
    VipLevel(level=4, price=1000.0, daily_profit=37.0, daily_tasks=4),
    VipLevel(level=5, price=3000.0, daily_profit=120.0, daily_tasks=5),
    VipLevel(level=6, price=6000.0, daily_profit=260.0, daily_tasks=6),
]

_BY_LEVEL: Dict[int, VipLevel] = {v.level: v for v in VIP_LEVELS}


def get_level(level: int) -> Optional[VipLevel]:
    return _BY_LEVEL.get(level)


def daily_reward(level: int) -> float:
    vip = _BY_LEVEL.get(level)
    return vip.daily_profit if vip else 0.0


def list_levels() -> List[dict]:
    return [asdict(v) for v in VIP_LEVELS]


class VipService:
    def __init__(self, storage: "StorageManager"):
        self._storage = storage

    async def upgrade(self, user_id: str, level: int) -> dict:
        target = get_level(level)
        if target is None or target.level == 0:
            raise VipError("Unknown VIP level", code="unknown_level")

        async with self._storage.transaction():
            profile = await self._storage.profiles.get(user_id)
            if profile is None:
                raise KeyError(f"Profile {user_id} not found")
            if profile["vip_level"] >= target.level:
                raise VipError("You already hold this level or higher", code="not_an_upgrade")
            if profile["balance"] < target.price:
                raise VipError(
                    f"Unlocking VIP {target.level} costs {target.price:g} USDT",
                    code="insufficient_balance",
                )
            if await self._storage.profiles.set_vip_level(user_id, target.level, target.price) != 1:
                raise VipError("Upgrade failed, please retry", code="upgrade_conflict")
            await self._storage.transactions.record(
                user_id, "vip_upgrade", -target.price,
                description=f"Upgrade to VIP {target.level}",
            )

        logger.info("User %s upgraded to VIP %d (price=%.2f)", user_id, target.level, target.price)
        return await self._storage.profiles.get(user_id)
