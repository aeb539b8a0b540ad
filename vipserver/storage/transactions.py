import time
from typing import List, Optional

import aiosqlite


def _row_to_tx(row) -> dict:
    return {
        "id": row[0],
        "user_id": row[1],
        "type": row[2],
        "amount": row[3],
        "status": row[4],
        "description": row[5],
        "reference_id": row[6],
        "created_at": row[7],
    }


class TransactionRepo:
    """Queries + insert for the transactions ledger."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def record(
        self,
        user_id: str,
        tx_type: str,
        amount: float,
        status: str = "completed",
        description: str = "",
        reference_id: str = "",
        created_at: Optional[float] = None,
    ) -> int:
        now = created_at if created_at is not None else time.time()
        cursor = await self._db.execute(
            "INSERT INTO transactions (user_id, type, amount, status, description, reference_id, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (user_id, tx_type, amount, status, description, reference_id, now),
        )
        return cursor.lastrowid

    async def set_status_for_reference(
        self, reference_id: str, tx_type: str, from_status: str, to_status: str
    ) -> int:
        cursor = await self._db.execute(
            "UPDATE transactions SET status = ? WHERE reference_id = ? AND type = ? AND status = ?",
            (to_status, reference_id, tx_type, from_status),
        )
        return cursor.rowcount

    async def list_for_reference(self, reference_id: str) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT id, user_id, type, amount, status, description, reference_id, created_at "
            "FROM transactions WHERE reference_id = ? ORDER BY id",
            (reference_id,),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_tx(row))
        return results

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[dict]:
        results = []
        async with self._db.execute(
            "SELECT id, user_id, type, amount, status, description, reference_id, created_at "
            "FROM transactions WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_tx(row))
        return results
