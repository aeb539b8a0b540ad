import time
from typing import List, Optional

import aiosqlite

OPEN_STATUSES = ("pending", "processing")

_COLUMNS = (
    "id, user_id, amount_usd, currency, network, wallet_address, status, "
    "payout_id, tx_hash, error_message, created_at, processed_at"
)


def _row_to_withdrawal(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "amount_usd": row[2],
        "currency": row[3],
        "network": row[4],
        "wallet_address": row[5],
        "status": row[6],
        "payout_id": row[7],
        "tx_hash": row[8],
        "error_message": row[9],
        "created_at": row[10],
        "processed_at": row[11],
    }


class WithdrawalRepo:
    """CRUD operations for the withdrawals table.

    Status changes go through ``transition()``, which only touches the row
    while it is still in the expected source status.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        withdrawal_id: str,
        user_id: str,
        amount_usd: float,
        currency: str,
        network: str,
        wallet_address: str,
        created_at: Optional[float] = None,
    ):
        now = created_at if created_at is not None else time.time()
        await self._db.execute(
            "INSERT INTO withdrawals (id, user_id, amount_usd, currency, network, wallet_address, "
            "status, created_at) VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)",
            (withdrawal_id, user_id, amount_usd, currency, network, wallet_address, now),
        )

    async def get(self, withdrawal_id: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM withdrawals WHERE id = ?", (withdrawal_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def has_open(self, user_id: str) -> bool:
        async with self._db.execute(
            "SELECT 1 FROM withdrawals WHERE user_id = ? AND status IN (?, ?) LIMIT 1",
            (user_id, *OPEN_STATUSES),
        ) as cursor:
            row = await cursor.fetchone()
        return row is not None

    async def transition(self, withdrawal_id: str, from_status: str, to_status: str, **fields) -> bool:
        """Conditional status update. Returns False if the row was not in ``from_status``."""
        assignments = ["status = ?"]
        params: list = [to_status]
        for column in ("payout_id", "tx_hash", "error_message", "processed_at"):
            if column in fields:
                assignments.append(f"{column} = ?")
                params.append(fields[column])
        params.extend([withdrawal_id, from_status])
        cursor = await self._db.execute(
            f"UPDATE withdrawals SET {', '.join(assignments)} WHERE id = ? AND status = ?",
            tuple(params),
        )
        return cursor.rowcount == 1

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM withdrawals WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_withdrawal(row))
        return results

    async def list_all(self, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[dict]:
        query = f"SELECT {_COLUMNS} FROM withdrawals"
        params: tuple = ()
        if status:
            query += " WHERE status = ?"
            params = (status,)
        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params += (limit, offset)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_withdrawal(row))
        return results

    async def count(self, status: Optional[str] = None) -> int:
        if status:
            query, params = "SELECT COUNT(*) FROM withdrawals WHERE status = ?", (status,)
        else:
            query, params = "SELECT COUNT(*) FROM withdrawals", ()
        async with self._db.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
