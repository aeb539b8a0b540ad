import time
from typing import Optional

import aiosqlite

_COLUMNS = (
    "user_id, email, username, password_hash, role, balance, total_earned, vip_level, "
    "daily_challenges_completed, referral_code, referred_by, last_withdrawal_at, "
    "created_at, updated_at"
)


def _row_to_profile(row) -> dict:
    return {
        "user_id": row[0],
        "email": row[1],
        "username": row[2],
        "password_hash": row[3],
        "role": row[4],
        "balance": row[5],
        "total_earned": row[6],
        "vip_level": row[7],
        "daily_challenges_completed": row[8],
        "referral_code": row[9],
        "referred_by": row[10],
        "last_withdrawal_at": row[11],
        "created_at": row[12],
        "updated_at": row[13],
    }


class ProfileRepo:
    """CRUD operations for the profiles table.

    Write methods do not commit; callers run them inside
    ``StorageManager.transaction()``.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        user_id: str,
        email: str,
        username: str,
        password_hash: str,
        referral_code: str,
        role: str = "user",
        referred_by: Optional[str] = None,
        balance: float = 0.0,
        total_earned: float = 0.0,
    ):
        now = time.time()
        await self._db.execute(
            "INSERT INTO profiles (user_id, email, username, password_hash, role, balance, "
            "total_earned, referral_code, referred_by, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (user_id, email, username, password_hash, role, balance, total_earned,
             referral_code, referred_by, now, now),
        )

    async def get(self, user_id: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM profiles WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_profile(row) if row else None

    async def get_by_email(self, email: str) -> Optional[dict]:
        if not email:
            return None
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM profiles WHERE email = ? COLLATE NOCASE", (email,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_profile(row) if row else None

    async def get_by_referral_code(self, code: str) -> Optional[dict]:
        if not code:
            return None
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM profiles WHERE referral_code = ?", (code,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_profile(row) if row else None

    async def adjust(
        self,
        user_id: str,
        balance_delta: float = 0.0,
        earned_delta: float = 0.0,
        challenges_delta: int = 0,
    ) -> int:
        """Apply relative changes; ``total_earned`` never drops below zero."""
        now = time.time()
        cursor = await self._db.execute(
            "UPDATE profiles SET balance = balance + ?, "
            "total_earned = MAX(0, total_earned + ?), "
            "daily_challenges_completed = daily_challenges_completed + ?, "
            "updated_at = ? WHERE user_id = ?",
            (balance_delta, earned_delta, challenges_delta, now, user_id),
        )
        return cursor.rowcount

    async def deduct_for_withdrawal(self, user_id: str, amount: float, at: float) -> int:
        cursor = await self._db.execute(
            "UPDATE profiles SET balance = balance - ?, "
            "total_earned = MAX(0, total_earned - ?), "
            "last_withdrawal_at = ?, updated_at = ? "
            "WHERE user_id = ? AND balance >= ?",
            (amount, amount, at, at, user_id, amount),
        )
        return cursor.rowcount

    async def set_vip_level(self, user_id: str, level: int, price: float) -> int:
        now = time.time()
        cursor = await self._db.execute(
            "UPDATE profiles SET vip_level = ?, balance = balance - ?, "
            "total_earned = MIN(total_earned, balance - ?), updated_at = ? "
            "WHERE user_id = ? AND balance >= ? AND vip_level < ?",
            (level, price, price, now, user_id, price, level),
        )
        return cursor.rowcount

    async def set_role(self, user_id: str, role: str):
        now = time.time()
        await self._db.execute(
            "UPDATE profiles SET role = ?, updated_at = ? WHERE user_id = ?",
            (role, now, user_id),
        )
