"""
settlement.py - Admin settlement of withdrawal requests.

State machine:
    pending -> processing -> completed | error
    pending -> rejected                      (balance refund)
    error   -> pending -> processing -> ...  (manual retry)
    processing -> error                      (payout interrupted)

Every transition is a conditional update on the expected source status, so
two admins acting on the same request cannot both move it. Funds were already
taken at intake: approval never touches the balance and a provider failure
leaves the request in ``error`` for investigation instead of refunding.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from vipserver import policy
from vipserver.errors import SettlementError
from vipserver.payouts import PayoutResult

if TYPE_CHECKING:
    from vipserver.notifier import TelegramNotifier
    from vipserver.payouts import NowPaymentsClient
    from vipserver.storage import StorageManager

logger = logging.getLogger("settlement")

ACTION_APPROVED = "WITHDRAWAL_APPROVED"
ACTION_ERROR = "WITHDRAWAL_ERROR"
ACTION_REJECTED = "WITHDRAWAL_REJECTED"
ACTION_RETRY_SUCCESS = "WITHDRAWAL_RETRY_SUCCESS"
ACTION_RETRY_FAILED = "WITHDRAWAL_RETRY_FAILED"
ACTION_MASS_PAYOUT = "MASS_PAYOUT"

PAYOUT_INTERRUPTED = "Payout interrupted"


class SettlementEngine:
    """Approves, rejects and retries withdrawal requests."""

    def __init__(
        self,
        storage: "StorageManager",
        payouts: "NowPaymentsClient",
        notifier: Optional["TelegramNotifier"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._payouts = payouts
        self._notifier = notifier
        self._clock = clock

    async def _get(self, withdrawal_id: str) -> dict:
        withdrawal = await self._storage.withdrawals.get(withdrawal_id)
        if withdrawal is None:
            raise SettlementError("Withdrawal not found", code="not_found")
        return withdrawal

    def _notify(self, withdrawal: dict, status: str, detail: str = ""):
        if self._notifier is not None:
            self._notifier.notify_withdrawal_status(withdrawal, status, detail)

    # -------------------------------------------------------------------
    # Payout path (approve / retry / mass payout)
    # -------------------------------------------------------------------

    async def _call_provider(self, withdrawal: dict) -> PayoutResult:
        try:
            return await self._payouts.create_payout(
                withdrawal["wallet_address"], withdrawal["currency"], withdrawal["amount_usd"],
            )
        except Exception as e:
            logger.exception("Payout provider raised for withdrawal %s", withdrawal["id"])
            return PayoutResult(success=False, error=str(e) or "Payout provider error")

    async def _pay(
        self,
        withdrawal: dict,
        admin_id: Optional[str],
        success_action: Optional[str],
        failure_action: Optional[str],
    ) -> dict:
        wid = withdrawal["id"]
        async with self._storage.transaction():
            claimed = await self._storage.withdrawals.transition(wid, "pending", "processing")
        if not claimed:
            raise SettlementError("Withdrawal is already processed", code="already_processed")

        logger.info("Processing payout for withdrawal %s: $%.2f to %s",
                    wid, withdrawal["amount_usd"], withdrawal["wallet_address"])
        try:
            return await self._finish_payout(withdrawal, admin_id, success_action, failure_action)
        except BaseException:
            # Never leave the row stuck in processing; error is retryable
            await self._mark_interrupted(wid)
            raise

    async def _mark_interrupted(self, wid: str):
        try:
            async with self._storage.transaction():
                moved = await self._storage.withdrawals.transition(
                    wid, "processing", "error",
                    error_message=PAYOUT_INTERRUPTED, processed_at=self._clock(),
                )
        except Exception:
            logger.exception("Could not release withdrawal %s from processing", wid)
            return
        if moved:
            logger.warning("Payout for withdrawal %s interrupted, moved to error", wid)

    async def _finish_payout(
        self,
        withdrawal: dict,
        admin_id: Optional[str],
        success_action: Optional[str],
        failure_action: Optional[str],
    ) -> dict:
        wid = withdrawal["id"]
        result = await self._call_provider(withdrawal)
        now = self._clock()

        if result.success:
            async with self._storage.transaction():
                await self._storage.withdrawals.transition(
                    wid, "processing", "completed",
                    payout_id=result.payout_id, tx_hash=result.tx_hash,
                    error_message=None, processed_at=now,
                )
                await self._storage.transactions.set_status_for_reference(
                    wid, "withdrawal", "pending", "completed",
                )
                if success_action:
                    await self._storage.activity.record(
                        success_action, admin_id=admin_id, target_id=wid,
                        details={"amount": withdrawal["amount_usd"], "payout_id": result.payout_id},
                    )
            updated = await self._storage.withdrawals.get(wid)
            logger.info("Withdrawal %s completed (payout_id=%s)", wid, result.payout_id)
            self._notify(updated, "completed")
            return {
                "success": True,
                "withdrawal": updated,
                "payout": {"id": result.payout_id, "hash": result.tx_hash},
            }

        async with self._storage.transaction():
            await self._storage.withdrawals.transition(
                wid, "processing", "error", error_message=result.error, processed_at=now,
            )
            if failure_action:
                await self._storage.activity.record(
                    failure_action, admin_id=admin_id, target_id=wid,
                    details={"amount": withdrawal["amount_usd"], "error": result.error},
                )
        updated = await self._storage.withdrawals.get(wid)
        logger.warning("Withdrawal %s payout failed: %s", wid, result.error)
        self._notify(updated, "error", result.error or "")
        return {"success": False, "error": result.error, "withdrawal": updated}

    async def approve(self, withdrawal_id: str, admin_id: Optional[str] = None) -> dict:
        withdrawal = await self._get(withdrawal_id)
        if withdrawal["status"] != "pending":
            raise SettlementError("Withdrawal is already processed", code="already_processed")
        return await self._pay(withdrawal, admin_id, ACTION_APPROVED, ACTION_ERROR)

    async def retry(self, withdrawal_id: str, admin_id: Optional[str] = None) -> dict:
        withdrawal = await self._get(withdrawal_id)
        if withdrawal["status"] != "error":
            raise SettlementError("Only failed withdrawals can be retried", code="not_retryable")
        async with self._storage.transaction():
            if await self._storage.withdrawals.has_open(withdrawal["user_id"]):
                raise SettlementError(
                    "User has another withdrawal under review", code="open_request",
                )
            reset = await self._storage.withdrawals.transition(
                withdrawal_id, "error", "pending", payout_id=None, error_message=None,
            )
        if not reset:
            raise SettlementError("Only failed withdrawals can be retried", code="not_retryable")
        logger.info("Withdrawal %s reset to pending for retry", withdrawal_id)
        return await self._pay(withdrawal, admin_id, ACTION_RETRY_SUCCESS, ACTION_RETRY_FAILED)

    async def mass_payout(self, withdrawal_ids: Iterable[str], admin_id: Optional[str] = None) -> dict:
        ids = list(dict.fromkeys(withdrawal_ids))
        results: List[dict] = []
        for wid in ids:
            withdrawal = await self._storage.withdrawals.get(wid)
            if withdrawal is None or withdrawal["status"] != "pending":
                results.append({"id": wid, "success": False, "error": "Not found or not pending"})
                continue
            try:
                outcome = await self._pay(withdrawal, admin_id, None, None)
            except SettlementError as e:
                results.append({"id": wid, "success": False, "error": e.message})
                continue
            item = {"id": wid, "success": outcome["success"]}
            if not outcome["success"]:
                item["error"] = outcome["error"]
            results.append(item)

        succeeded = sum(1 for r in results if r["success"])
        failed = len(results) - succeeded
        async with self._storage.transaction():
            await self._storage.activity.record(
                ACTION_MASS_PAYOUT, admin_id=admin_id,
                details={"total": len(ids), "success": succeeded, "failed": failed},
            )
        logger.info("Mass payout finished: %d/%d succeeded", succeeded, len(ids))
        return {
            "success": True,
            "message": f"Processed {succeeded} of {len(ids)} requests",
            "results": results,
        }

    # -------------------------------------------------------------------
    # Rejection
    # -------------------------------------------------------------------

    async def reject(self, withdrawal_id: str, admin_id: Optional[str] = None) -> dict:
        withdrawal = await self._get(withdrawal_id)
        if withdrawal["status"] != "pending":
            raise SettlementError("Withdrawal is already processed", code="already_processed")

        amount = withdrawal["amount_usd"]
        balance_delta, earned_delta = policy.rejection_refund(amount)
        now = self._clock()
        async with self._storage.transaction():
            moved = await self._storage.withdrawals.transition(
                withdrawal_id, "pending", "rejected", processed_at=now,
            )
            if not moved:
                raise SettlementError("Withdrawal is already processed", code="already_processed")
            await self._storage.profiles.adjust(
                withdrawal["user_id"], balance_delta=balance_delta, earned_delta=earned_delta,
            )
            await self._storage.transactions.record(
                withdrawal["user_id"], "deposit", balance_delta,
                description="Refund of rejected withdrawal",
                reference_id=withdrawal_id, created_at=now,
            )
            await self._storage.transactions.set_status_for_reference(
                withdrawal_id, "withdrawal", "pending", "rejected",
            )
            await self._storage.activity.record(
                ACTION_REJECTED, admin_id=admin_id, target_id=withdrawal_id,
                details={"amount": amount, "refunded": True},
            )

        updated = await self._storage.withdrawals.get(withdrawal_id)
        logger.info("Withdrawal %s rejected, refunded %.2f to %s",
                    withdrawal_id, balance_delta, withdrawal["user_id"])
        self._notify(updated, "rejected")
        return {"success": True, "message": "Request rejected and balance refunded", "withdrawal": updated}

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    async def list_withdrawals(self, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> dict:
        items = await self._storage.withdrawals.list_all(status=status, limit=limit, offset=offset)
        owners: dict = {}
        for item in items:
            uid = item["user_id"]
            if uid not in owners:
                owners[uid] = await self._storage.profiles.get(uid)
            owner = owners[uid] or {}
            item["username"] = owner.get("username", "")
            item["email"] = owner.get("email", "")
        total = await self._storage.withdrawals.count(status=status)
        return {"items": items, "total": total, "limit": limit, "offset": offset}
