"""
VIP Membership Platform - Server Package

Membership/investment backend: withdrawal eligibility and intake, admin
settlement through the payout provider, daily claims, VIP upgrades,
referral commissions and crypto deposits. SQLite storage, REST API.
"""

__version__ = "0.3.0"

__all__ = [
    "auth",
    "claims",
    "deposits",
    "errors",
    "notifier",
    "payouts",
    "policy",
    "referrals",
    "server",
    "settings",
    "settlement",
    "storage",
    "vip",
    "withdrawals",
]
