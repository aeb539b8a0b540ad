"""
test_policy.py - Unit tests for the withdrawal eligibility policy.

Pure functions only: the time window, rule precedence, limits, the
earnings-only rule, address bounds and the rejection refund split.
"""

import pytest

from vipserver import policy
from vipserver.settings import SettingsSnapshot

from .conftest import WALLET, at_utc, make_profile


def _evaluate(profile, settings, now, amount, **kwargs):
    return policy.evaluate_withdrawal(profile, settings, now, amount, **kwargs)


class TestWindow:

    @pytest.mark.parametrize("hour,minute,expected", [
        (11, 59, False),
        (12, 0, True),
        (12, 59, True),
        (13, 0, False),
        (0, 0, False),
    ])
    def test_window_bounds(self, hour, minute, expected):
        assert policy.withdrawal_window_open(at_utc(hour, minute)) is expected

    def test_next_window_same_day(self):
        assert policy.next_window_opens_at(at_utc(9, 15)) == at_utc(12, 0)

    def test_next_window_while_open(self):
        assert policy.next_window_opens_at(at_utc(12, 45)) == at_utc(12, 0)

    def test_next_window_tomorrow(self):
        assert policy.next_window_opens_at(at_utc(18, 0)) == at_utc(12, 0, day=3)

    def test_closed_window_denies_with_next_opening(self, profile, settings):
        decision = _evaluate(profile, settings, at_utc(14, 0), 10)
        assert decision.allowed is False
        assert decision.code == "window_closed"
        assert decision.next_allowed_at == at_utc(12, 0, day=3)
        assert "12:00" in decision.message


class TestPrecedence:

    def test_window_beats_everything(self, settings):
        broke = make_profile(balance=0.0, total_earned=0.0)
        decision = _evaluate(broke, settings, at_utc(8, 0), 1, wallet_address="x", has_open_request=True)
        assert decision.code == "window_closed"

    def test_disabled_beats_open_request(self, noon):
        disabled = SettingsSnapshot(withdrawals_enabled=False)
        decision = _evaluate(make_profile(), disabled, noon, 10, has_open_request=True)
        assert decision.code == "withdrawals_disabled"

    def test_open_request_beats_user_fields(self, settings, noon):
        profile = make_profile(balance=0.0, total_earned=0.0, last_withdrawal_at=noon - 60)
        decision = _evaluate(profile, settings, noon, 0.5, wallet_address="bad", has_open_request=True)
        assert decision.code == "open_request"

    def test_cooldown_beats_amount(self, settings, noon):
        profile = make_profile(last_withdrawal_at=noon - 3600)
        decision = _evaluate(profile, settings, noon, 0.5)
        assert decision.code == "cooldown"


class TestCooldown:

    def test_hours_rounded_up(self, settings, noon):
        profile = make_profile(last_withdrawal_at=noon - 1800)
        decision = _evaluate(profile, settings, noon, 10)
        assert decision.code == "cooldown"
        assert "24 hour(s)" in decision.message
        assert decision.next_allowed_at == noon - 1800 + 24 * 3600

    def test_configured_cooldown(self, noon):
        short = SettingsSnapshot(cooldown_hours=1)
        profile = make_profile(last_withdrawal_at=noon - 3600)
        assert _evaluate(profile, short, noon, 10).allowed is True

    def test_never_withdrawn(self, settings, noon):
        assert policy.next_withdrawal_at(make_profile(), settings) is None
        assert _evaluate(make_profile(), settings, noon, 10).allowed is True


class TestAmounts:

    @pytest.mark.parametrize("amount", [1.99, 1, 0.01, 0, -3, float("nan")])
    def test_below_minimum(self, profile, settings, noon, amount):
        decision = _evaluate(profile, settings, noon, amount)
        assert decision.code == "below_minimum"
        assert "$2" in decision.message

    def test_minimum_inclusive(self, profile, settings, noon):
        assert _evaluate(profile, settings, noon, 2).allowed is True

    def test_above_maximum(self, noon):
        rich = make_profile(balance=5000.0, total_earned=5000.0)
        decision = _evaluate(rich, SettingsSnapshot(), noon, 1000.01)
        assert decision.code == "above_maximum"
        assert _evaluate(rich, SettingsSnapshot(), noon, 1000).allowed is True

    def test_earnings_only(self, profile, settings, noon):
        # balance 100, earned 50
        assert _evaluate(profile, settings, noon, 50).allowed is True
        decision = _evaluate(profile, settings, noon, 50.01)
        assert decision.code == "earnings_only"

    def test_balance_below_earnings(self, settings, noon):
        spent = make_profile(balance=20.0, total_earned=50.0)
        assert _evaluate(spent, settings, noon, 30).code == "insufficient_balance"


class TestAddress:

    @pytest.mark.parametrize("length,allowed", [(19, False), (20, True), (100, True), (101, False)])
    def test_length_bounds(self, profile, settings, noon, length, allowed):
        decision = _evaluate(profile, settings, noon, 10, wallet_address="T" * length)
        assert decision.allowed is allowed
        if not allowed:
            assert decision.code == "invalid_address"

    def test_whitespace_is_ignored(self, profile, settings, noon):
        assert _evaluate(profile, settings, noon, 10, wallet_address=f"  {WALLET}  ").allowed is True

    def test_address_optional_for_preview(self, profile, settings, noon):
        assert _evaluate(profile, settings, noon, 10, wallet_address=None).allowed is True


class TestDecision:

    def test_allowed_to_dict(self):
        assert policy.ALLOWED.to_dict() == {
            "allowed": True, "code": None, "message": "", "next_allowed_at": None,
        }

    def test_rejection_refund_restores_balance_only(self):
        assert policy.rejection_refund(30.0) == (30.0, 0.0)
