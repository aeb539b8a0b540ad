"""
withdrawals.py - Withdrawal intake.

create_withdrawal() re-runs the eligibility policy against the profile as it
is stored (never trusting what the client saw) and then, in one IMMEDIATE
transaction, deducts balance and total_earned, stamps last_withdrawal_at,
inserts the pending withdrawal and its pending -amount ledger entry. Any
failure rolls all of it back; nothing is left half-applied.
"""

import logging
import time
import uuid
from typing import TYPE_CHECKING, Callable, List, Optional

from vipserver import policy
from vipserver.errors import WithdrawalError
from vipserver.settings import SettingsSnapshot, load_snapshot

if TYPE_CHECKING:
    from vipserver.notifier import TelegramNotifier
    from vipserver.storage import StorageManager

logger = logging.getLogger("withdrawals")

DEFAULT_NETWORK = "TRC20"


class WithdrawalService:
    """Validates and records user withdrawal requests."""

    def __init__(
        self,
        storage: "StorageManager",
        notifier: Optional["TelegramNotifier"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._notifier = notifier
        self._clock = clock

    async def load_settings(self) -> SettingsSnapshot:
        return await load_snapshot(self._storage)

    async def get_eligibility(self, user_id: str, amount: Optional[float] = None) -> dict:
        """What the withdrawal screen needs to enable or disable its controls."""
        profile = await self._storage.profiles.get(user_id)
        if profile is None:
            raise KeyError(f"Profile {user_id} not found")
        settings = await self.load_settings()
        now = self._clock()
        has_open = await self._storage.withdrawals.has_open(user_id)

        probe = amount if amount is not None else settings.min_withdrawal
        decision = policy.evaluate_withdrawal(
            profile, settings, now, probe, has_open_request=has_open,
        )
        cooldown_end = policy.next_withdrawal_at(profile, settings)
        return {
            "can_withdraw": decision.allowed,
            "decision": decision.to_dict(),
            "window_open": policy.withdrawal_window_open(now),
            "next_window_at": policy.next_window_opens_at(now),
            "next_withdrawal_at": cooldown_end if cooldown_end and cooldown_end > now else None,
            "has_open_request": has_open,
            "withdrawable": round(min(profile["total_earned"], profile["balance"]), 4),
            "balance": profile["balance"],
            "limits": {"min": settings.min_withdrawal, "max": settings.max_withdrawal},
        }

    async def create_withdrawal(
        self,
        user_id: str,
        amount,
        currency: str,
        wallet_address: str,
        network: Optional[str] = None,
    ) -> dict:
        if amount is None or not currency or not wallet_address:
            raise WithdrawalError("All fields are required", code="missing_fields")
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise WithdrawalError("Invalid amount", code="invalid_amount")
        if amount != amount or amount in (float("inf"), float("-inf")):
            raise WithdrawalError("Invalid amount", code="invalid_amount")

        currency = currency.strip().upper()
        wallet_address = wallet_address.strip()
        network = (network or DEFAULT_NETWORK).strip().upper()
        settings = await self.load_settings()

        withdrawal_id = str(uuid.uuid4())
        async with self._storage.transaction():
            profile = await self._storage.profiles.get(user_id)
            if profile is None:
                raise WithdrawalError("Profile not found", code="profile_not_found")

            now = self._clock()
            has_open = await self._storage.withdrawals.has_open(user_id)
            decision = policy.evaluate_withdrawal(
                profile, settings, now, amount,
                wallet_address=wallet_address, has_open_request=has_open,
            )
            if not decision.allowed:
                logger.info(
                    "Withdrawal denied for %s: %s (amount=%.2f)", user_id, decision.code, amount,
                )
                extra = {}
                if decision.next_allowed_at is not None:
                    extra["next_allowed_at"] = decision.next_allowed_at
                raise WithdrawalError(decision.message, code=decision.code, **extra)

            if await self._storage.profiles.deduct_for_withdrawal(user_id, amount, now) != 1:
                raise WithdrawalError("Insufficient total balance", code="insufficient_balance")
            await self._storage.withdrawals.create(
                withdrawal_id, user_id, amount, currency, network, wallet_address, created_at=now,
            )
            await self._storage.transactions.record(
                user_id,
                "withdrawal",
                -amount,
                status="pending",
                description=f"Withdrawal {currency} to {wallet_address[:8]}...",
                reference_id=withdrawal_id,
                created_at=now,
            )

        withdrawal = await self._storage.withdrawals.get(withdrawal_id)
        logger.info(
            "Withdrawal %s created: user=%s amount=%.2f %s/%s",
            withdrawal_id, user_id, amount, currency, network,
        )
        if self._notifier is not None:
            self._notifier.notify_withdrawal_created(profile, withdrawal)
        return withdrawal

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[dict]:
        return await self._storage.withdrawals.list_for_user(user_id, limit=limit)
