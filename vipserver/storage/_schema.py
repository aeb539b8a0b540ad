SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Profiles: one per registered user, created at signup, never deleted
CREATE TABLE IF NOT EXISTS profiles (
    user_id        TEXT PRIMARY KEY,
    email          TEXT NOT NULL UNIQUE COLLATE NOCASE,
    username       TEXT NOT NULL DEFAULT '',
    password_hash  TEXT NOT NULL DEFAULT '',
    role           TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
    balance        REAL NOT NULL DEFAULT 0.0,
    total_earned   REAL NOT NULL DEFAULT 0.0,
    vip_level      INTEGER NOT NULL DEFAULT 0,
    daily_challenges_completed INTEGER NOT NULL DEFAULT 0,
    referral_code  TEXT NOT NULL UNIQUE,
    referred_by    TEXT,
    last_withdrawal_at REAL,
    created_at     REAL NOT NULL,
    updated_at     REAL NOT NULL
);

-- Withdrawal requests
CREATE TABLE IF NOT EXISTS withdrawals (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    amount_usd     REAL NOT NULL,
    currency       TEXT NOT NULL,
    network        TEXT NOT NULL DEFAULT 'TRC20',
    wallet_address TEXT NOT NULL,
    status         TEXT NOT NULL DEFAULT 'pending'
                   CHECK (status IN ('pending', 'processing', 'completed', 'rejected', 'error')),
    payout_id      TEXT,
    tx_hash        TEXT,
    error_message  TEXT,
    created_at     REAL NOT NULL,
    processed_at   REAL,
    FOREIGN KEY (user_id) REFERENCES profiles(user_id)
);

-- Transactions: append-only ledger of balance changes
CREATE TABLE IF NOT EXISTS transactions (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT NOT NULL,
    type         TEXT NOT NULL CHECK (type IN ('deposit', 'withdrawal', 'daily_reward', 'commission', 'vip_upgrade', 'challenge')),
    amount       REAL NOT NULL,
    status       TEXT NOT NULL DEFAULT 'completed' CHECK (status IN ('pending', 'completed', 'rejected', 'failed')),
    description  TEXT NOT NULL DEFAULT '',
    reference_id TEXT NOT NULL DEFAULT '',
    created_at   REAL NOT NULL,
    FOREIGN KEY (user_id) REFERENCES profiles(user_id)
);

-- Daily claims: one row per successful claim
CREATE TABLE IF NOT EXISTS daily_claims (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id    TEXT NOT NULL,
    vip_level  INTEGER NOT NULL,
    amount     REAL NOT NULL,
    created_at REAL NOT NULL,
    FOREIGN KEY (user_id) REFERENCES profiles(user_id)
);

-- Activity logs: admin-triggered state transitions
CREATE TABLE IF NOT EXISTS activity_logs (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    admin_id   TEXT,
    action     TEXT NOT NULL,
    target_id  TEXT,
    details    TEXT NOT NULL DEFAULT '{}',
    created_at REAL NOT NULL
);

-- Admin settings: key -> JSON value
CREATE TABLE IF NOT EXISTS admin_settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at REAL NOT NULL
);

-- Referral tree, up to three levels per referred user
CREATE TABLE IF NOT EXISTS referrals (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    referrer_id TEXT NOT NULL,
    referred_id TEXT NOT NULL,
    level       INTEGER NOT NULL CHECK (level IN (1, 2, 3)),
    created_at  REAL NOT NULL,
    UNIQUE (referrer_id, referred_id)
);

-- Commissions paid out of referred users' deposits
CREATE TABLE IF NOT EXISTS referral_commissions (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    referrer_id       TEXT NOT NULL,
    referred_id       TEXT NOT NULL,
    deposit_id        TEXT NOT NULL,
    level             INTEGER NOT NULL,
    commission_rate   REAL NOT NULL,
    commission_amount REAL NOT NULL,
    created_at        REAL NOT NULL
);

-- Crypto deposit invoices
CREATE TABLE IF NOT EXISTS deposits (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    order_id       TEXT NOT NULL UNIQUE,
    payment_id     TEXT,
    amount_usd     REAL NOT NULL,
    amount_crypto  REAL,
    currency       TEXT NOT NULL,
    network        TEXT NOT NULL DEFAULT '',
    pay_address    TEXT NOT NULL DEFAULT '',
    payment_status TEXT NOT NULL DEFAULT 'waiting',
    credited       INTEGER NOT NULL DEFAULT 0,
    created_at     REAL NOT NULL,
    confirmed_at   REAL,
    FOREIGN KEY (user_id) REFERENCES profiles(user_id)
);

-- Platform-wide aggregate counters (single row)
CREATE TABLE IF NOT EXISTS platform_stats (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    total_paid  REAL NOT NULL DEFAULT 0.0,
    total_users INTEGER NOT NULL DEFAULT 0
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_withdrawals_user ON withdrawals(user_id);
CREATE INDEX IF NOT EXISTS idx_withdrawals_status ON withdrawals(status);
CREATE UNIQUE INDEX IF NOT EXISTS idx_withdrawals_user_open
    ON withdrawals(user_id) WHERE status IN ('pending', 'processing');
CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id);
CREATE INDEX IF NOT EXISTS idx_transactions_reference ON transactions(reference_id);
CREATE INDEX IF NOT EXISTS idx_daily_claims_user_ts ON daily_claims(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_activity_logs_created ON activity_logs(created_at);
CREATE INDEX IF NOT EXISTS idx_referrals_referrer ON referrals(referrer_id);
CREATE INDEX IF NOT EXISTS idx_referrals_referred ON referrals(referred_id);
CREATE INDEX IF NOT EXISTS idx_commissions_referrer ON referral_commissions(referrer_id);
CREATE INDEX IF NOT EXISTS idx_deposits_user ON deposits(user_id);
CREATE INDEX IF NOT EXISTS idx_deposits_payment ON deposits(payment_id);

INSERT OR IGNORE INTO platform_stats (id, total_paid, total_users) VALUES (1, 0.0, 0);
"""
