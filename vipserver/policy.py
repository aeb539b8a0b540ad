"""
policy.py - Withdrawal eligibility rules.

evaluate_withdrawal() is the single source of truth for whether a withdrawal
may be created right now. The eligibility preview endpoint (what the UI shows)
and the authoritative intake both call it, so the two can never drift apart.

Rules, first failure wins:
  1. Wall-clock UTC hour inside the daily window [12:00, 13:00)
  2. Withdrawals enabled by the admin settings
  3. No other request of the user still pending/processing
  4. Cooldown since last_withdrawal_at elapsed
  5. amount >= minimum
  6. amount <= maximum
  7. amount <= total_earned (profit only, never deposited principal)
  8. amount <= balance
  9. wallet address length within [20, 100]
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from vipserver.settings import SettingsSnapshot

WINDOW_START_HOUR = 12
WINDOW_END_HOUR = 13
MIN_ADDRESS_LENGTH = 20
MAX_ADDRESS_LENGTH = 100

MESSAGES = {
    "window_closed": "Withdrawals are only accepted between {start:02d}:00 and {end:02d}:00 UTC",
    "withdrawals_disabled": "Withdrawals are temporarily disabled",
    "open_request": "You already have a withdrawal request under review",
    "cooldown": "You must wait {hours} hour(s) before your next withdrawal",
    "below_minimum": "The minimum withdrawal is ${limit:g}",
    "above_maximum": "The maximum withdrawal is ${limit:g}",
    "earnings_only": "Deposits cannot be withdrawn, only your earnings",
    "insufficient_balance": "Insufficient total balance",
    "invalid_address": "Please enter a valid wallet address",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    code: Optional[str] = None
    message: str = ""
    next_allowed_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "code": self.code,
            "message": self.message,
            "next_allowed_at": self.next_allowed_at,
        }


ALLOWED = Decision(allowed=True)


def _deny(code: str, next_allowed_at: Optional[float] = None, **fmt) -> Decision:
    return Decision(
        allowed=False,
        code=code,
        message=MESSAGES[code].format(**fmt),
        next_allowed_at=next_allowed_at,
    )


def withdrawal_window_open(now: float) -> bool:
    hour = datetime.fromtimestamp(now, tz=timezone.utc).hour
    return WINDOW_START_HOUR <= hour < WINDOW_END_HOUR


def next_window_opens_at(now: float) -> float:
    """Start of the current window if it is open, otherwise of the next one."""
    current = datetime.fromtimestamp(now, tz=timezone.utc)
    start = current.replace(hour=WINDOW_START_HOUR, minute=0, second=0, microsecond=0)
    if current.hour >= WINDOW_END_HOUR:
        start += timedelta(days=1)
    return start.timestamp()


def next_withdrawal_at(profile: dict, settings: SettingsSnapshot) -> Optional[float]:
    last = profile.get("last_withdrawal_at")
    if not last:
        return None
    return last + settings.cooldown_hours * 3600


def evaluate_withdrawal(
    profile: dict,
    settings: SettingsSnapshot,
    now: float,
    amount: float,
    wallet_address: Optional[str] = None,
    has_open_request: bool = False,
) -> Decision:
    """Decide whether ``profile`` may withdraw ``amount`` at ``now``.

    ``wallet_address`` is optional so the UI can check the amount step before
    the address has been entered; the intake always passes it.
    """
    if not withdrawal_window_open(now):
        return _deny(
            "window_closed",
            next_allowed_at=next_window_opens_at(now),
            start=WINDOW_START_HOUR,
            end=WINDOW_END_HOUR,
        )

    if not settings.withdrawals_enabled:
        return _deny("withdrawals_disabled")

    if has_open_request:
        return _deny("open_request")

    cooldown_end = next_withdrawal_at(profile, settings)
    if cooldown_end is not None and now < cooldown_end:
        hours = math.ceil((cooldown_end - now) / 3600)
        return _deny("cooldown", next_allowed_at=cooldown_end, hours=hours)

    if not (amount > 0 and amount >= settings.min_withdrawal):
        return _deny("below_minimum", limit=settings.min_withdrawal)

    if amount > settings.max_withdrawal:
        return _deny("above_maximum", limit=settings.max_withdrawal)

    if amount > profile.get("total_earned", 0.0):
        return _deny("earnings_only")

    if amount > profile.get("balance", 0.0):
        return _deny("insufficient_balance")

    if wallet_address is not None:
        if not MIN_ADDRESS_LENGTH <= len(wallet_address.strip()) <= MAX_ADDRESS_LENGTH:
            return _deny("invalid_address")

    return ALLOWED


def rejection_refund(amount: float) -> Tuple[float, float]:
    """(balance_delta, total_earned_delta) applied when a withdrawal is rejected.

    Only the spendable balance is restored; the profit subtotal that was
    deducted at intake is not. Kept as-is until product decides otherwise.
    """
    return amount, 0.0
