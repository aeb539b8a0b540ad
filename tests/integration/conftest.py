"""
Shared fixtures for the platform integration tests.

Provides:
 - An in-memory StorageManager with migrations applied
 - FakePayouts / FakeNotifier standing in for NOWPayments and Telegram
 - A settable clock, parked inside the daily withdrawal window by default
 - Helpers to seed profiles and withdrawals through the storage layer
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

import pytest
import pytest_asyncio

from vipserver.payouts import PaymentGatewayError, PayoutResult
from vipserver.storage import StorageManager


# ── Constants ─────────────────────────────────────────────────────────────

WALLET = "TQ7x9kLmN3pRsT5vWyZa2bC4dE6fG8hJ1k"  # 34 chars, TRC20-shaped


def utc_ts(year=2026, month=3, day=2, hour=12, minute=30) -> float:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp()


IN_WINDOW = utc_ts(hour=12, minute=30)
OUT_OF_WINDOW = utc_ts(hour=15, minute=0)


# ── Fakes ─────────────────────────────────────────────────────────────────

class FakeClock:
    def __init__(self, now: float = IN_WINDOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePayouts:
    """Scripted payout provider: pops queued results, succeeds by default."""

    def __init__(self):
        self.configured = True
        self.results: List[PayoutResult] = []
        self.raise_next: Optional[BaseException] = None
        self.payout_calls: List[dict] = []
        self.payment_calls: List[dict] = []
        self.payment_response: Optional[dict] = None
        self.payment_error: Optional[str] = None

    def fail_next(self, error: str = "Insufficient payout balance"):
        self.results.append(PayoutResult(success=False, error=error))

    async def create_payout(self, address: str, currency: str, amount: float) -> PayoutResult:
        self.payout_calls.append({"address": address, "currency": currency, "amount": amount})
        if self.raise_next is not None:
            exc, self.raise_next = self.raise_next, None
            raise exc
        if self.results:
            return self.results.pop(0)
        n = len(self.payout_calls)
        return PayoutResult(success=True, payout_id=f"po-{n}", tx_hash=f"0xhash{n}")

    async def create_payment(self, amount_usd, currency, order_id, description) -> dict:
        self.payment_calls.append({
            "amount_usd": amount_usd, "currency": currency,
            "order_id": order_id, "description": description,
        })
        if self.payment_error:
            raise PaymentGatewayError(self.payment_error)
        if self.payment_response is not None:
            return dict(self.payment_response)
        return {
            "payment_id": 5077125051 + len(self.payment_calls),
            "payment_status": "waiting",
            "pay_address": "TPayInAddr0000000000000000000001",
            "pay_amount": amount_usd + 0.004,
            "pay_currency": currency.lower(),
            "network": "trx",
        }


class FakeNotifier:
    def __init__(self):
        self.enabled = True
        self.created: List[dict] = []
        self.status_changes: List[tuple] = []

    def notify_withdrawal_created(self, profile: dict, withdrawal: dict):
        self.created.append(withdrawal)

    def notify_withdrawal_status(self, withdrawal: dict, status: str, detail: str = ""):
        self.status_changes.append((withdrawal["id"], status, detail))

    async def drain(self):
        pass


# ── Fixtures ──────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(":memory:")
    await sm.initialize()
    yield sm
    await sm.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def payouts():
    return FakePayouts()


@pytest.fixture
def notifier():
    return FakeNotifier()


# ── Seed helpers ──────────────────────────────────────────────────────────

async def make_profile(
    storage,
    balance: float = 0.0,
    total_earned: float = 0.0,
    vip_level: int = 0,
    last_withdrawal_at: Optional[float] = None,
    role: str = "user",
) -> str:
    user_id = str(uuid.uuid4())
    async with storage.transaction():
        await storage.profiles.create(
            user_id,
            f"{user_id[:8]}@example.com",
            f"user-{user_id[:6]}",
            "",
            uuid.uuid4().hex[:8].upper(),
            role=role,
            balance=balance,
            total_earned=total_earned,
        )
        if vip_level or last_withdrawal_at is not None:
            await storage._db.execute(
                "UPDATE profiles SET vip_level = ?, last_withdrawal_at = ? WHERE user_id = ?",
                (vip_level, last_withdrawal_at, user_id),
            )
    return user_id


async def make_pending_withdrawal(storage, user_id: str, amount: float, created_at: float = IN_WINDOW) -> str:
    """Insert a pending withdrawal with its pending ledger row, funds already taken."""
    withdrawal_id = str(uuid.uuid4())
    async with storage.transaction():
        await storage.profiles.deduct_for_withdrawal(user_id, amount, created_at)
        await storage.withdrawals.create(
            withdrawal_id, user_id, amount, "USDT", "TRC20", WALLET, created_at=created_at,
        )
        await storage.transactions.record(
            user_id, "withdrawal", -amount, status="pending",
            reference_id=withdrawal_id, created_at=created_at,
        )
    return withdrawal_id


async def set_setting(storage, key: str, value):
    async with storage.transaction():
        await storage.settings.set(key, value)
