"""Shared fixtures for the platform unit tests."""

from datetime import datetime, timezone

import pytest

from vipserver.settings import SettingsSnapshot


WALLET = "TQ7x9kLmN3pRsT5vWyZa2bC4dE6fG8hJ1k"


# ── Helpers ─────────────────────────────────────────────────────────────────

def at_utc(hour: int, minute: int = 0, day: int = 2) -> float:
    """Unix timestamp for 2026-03-<day> <hour>:<minute> UTC."""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc).timestamp()


def make_profile(balance=100.0, total_earned=50.0, last_withdrawal_at=None) -> dict:
    return {
        "user_id": "u-1",
        "balance": balance,
        "total_earned": total_earned,
        "last_withdrawal_at": last_withdrawal_at,
    }


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def settings():
    """Default limits: min 2, max 1000, 24h cooldown, enabled."""
    return SettingsSnapshot()


@pytest.fixture
def noon():
    """Inside the daily withdrawal window."""
    return at_utc(12, 30)


@pytest.fixture
def profile():
    return make_profile()
