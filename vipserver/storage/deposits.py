import time
from typing import List, Optional

import aiosqlite

_COLUMNS = (
    "id, user_id, order_id, payment_id, amount_usd, amount_crypto, currency, network, "
    "pay_address, payment_status, credited, created_at, confirmed_at"
)


def _row_to_deposit(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "order_id": row[2],
        "payment_id": row[3],
        "amount_usd": row[4],
        "amount_crypto": row[5],
        "currency": row[6],
        "network": row[7],
        "pay_address": row[8],
        "payment_status": row[9],
        "credited": bool(row[10]),
        "created_at": row[11],
        "confirmed_at": row[12],
    }


class DepositRepo:
    """Crypto deposit invoices."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        deposit_id: str,
        user_id: str,
        order_id: str,
        payment_id: Optional[str],
        amount_usd: float,
        amount_crypto: Optional[float],
        currency: str,
        network: str,
        pay_address: str,
        payment_status: str = "waiting",
    ):
        await self._db.execute(
            "INSERT INTO deposits (id, user_id, order_id, payment_id, amount_usd, amount_crypto, "
            "currency, network, pay_address, payment_status, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (deposit_id, user_id, order_id, payment_id, amount_usd, amount_crypto,
             currency, network, pay_address, payment_status, time.time()),
        )

    async def get(self, deposit_id: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM deposits WHERE id = ?", (deposit_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_deposit(row) if row else None

    async def find(self, payment_id: str = "", order_id: str = "") -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM deposits WHERE (payment_id = ? AND ? != '') "
            "OR (order_id = ? AND ? != '') LIMIT 1",
            (payment_id, payment_id, order_id, order_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_deposit(row) if row else None

    async def set_status(self, deposit_id: str, payment_status: str):
        await self._db.execute(
            "UPDATE deposits SET payment_status = ? WHERE id = ?",
            (payment_status, deposit_id),
        )

    async def mark_credited(self, deposit_id: str) -> bool:
        """Flip the credited flag once. False if it was already credited."""
        cursor = await self._db.execute(
            "UPDATE deposits SET credited = 1, confirmed_at = ? WHERE id = ? AND credited = 0",
            (time.time(), deposit_id),
        )
        return cursor.rowcount == 1

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM deposits WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_deposit(row))
        return results
