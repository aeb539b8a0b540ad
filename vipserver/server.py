"""
server.py - Platform server entry point.

Single-process server combining:
 - SQLite persistent storage via StorageManager
 - Platform services (auth, withdrawals, settlement, claims, VIP, referrals, deposits)
 - REST API (FastAPI on uvicorn, port 8080)

Usage:
    python -m vipserver.server [--api-port 8080] [--db-path data/platform.db]
    vipserver [--api-port 8080] [--db-path data/platform.db]

Every flag defaults to an environment variable so containers can be
configured without a command line.
"""

import argparse
import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI

from vipserver import __version__
from vipserver.auth import AuthService
from vipserver.claims import DailyClaimService
from vipserver.deposits import DepositService
from vipserver.notifier import TelegramNotifier
from vipserver.payouts import DEFAULT_API_URL, NowPaymentsClient
from vipserver.referrals import ReferralService
from vipserver.routers import register_all_routers
from vipserver.settlement import SettlementEngine
from vipserver.storage import StorageManager
from vipserver.vip import VipService
from vipserver.withdrawals import WithdrawalService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("server")


@dataclass
class ServerConfig:
    api_port: int = 8080
    db_path: str = "data/platform.db"
    jwt_secret: str = ""
    admin_email: str = ""
    admin_password: str = ""
    payout_api_key: str = ""
    payout_api_url: str = DEFAULT_API_URL
    ipn_secret: str = ""
    ipn_callback_url: str = ""
    telegram_token: str = ""
    telegram_chat_id: str = ""
    dashboard_url: str = ""


# ---------------------------------------------------------------------------
# Platform server
# ---------------------------------------------------------------------------

class PlatformServer:
    """REST API plus the services behind it.

    ``payouts``, ``notifier`` and ``clock`` can be injected; otherwise they
    are built from the config.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        payouts: Optional[NowPaymentsClient] = None,
        notifier: Optional[TelegramNotifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or ServerConfig()
        self.clock = clock

        self.payouts = payouts or NowPaymentsClient(
            api_key=self.config.payout_api_key,
            api_url=self.config.payout_api_url,
            ipn_callback_url=self.config.ipn_callback_url,
        )
        self.notifier = notifier or TelegramNotifier(
            bot_token=self.config.telegram_token,
            chat_id=self.config.telegram_chat_id,
            dashboard_url=self.config.dashboard_url,
        )

        # Storage + services are initialized async in initialize()
        self.storage: Optional[StorageManager] = None
        self.auth: Optional[AuthService] = None
        self.referrals: Optional[ReferralService] = None
        self.withdrawals: Optional[WithdrawalService] = None
        self.settlement: Optional[SettlementEngine] = None
        self.claims: Optional[DailyClaimService] = None
        self.vip: Optional[VipService] = None
        self.deposits: Optional[DepositService] = None

        self.app = FastAPI(title="VIP Membership Platform", version=__version__)
        self.app.state.server = self
        register_all_routers(self.app)

        self._uvicorn_server: Optional[uvicorn.Server] = None

    async def initialize(self):
        """Open storage and wire up services (must be called in async context)."""
        db_dir = os.path.dirname(self.config.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.storage = StorageManager(self.config.db_path)
        await self.storage.initialize()

        self.referrals = ReferralService(self.storage)
        self.auth = AuthService(self.storage, self.referrals, jwt_secret=self.config.jwt_secret)
        self.withdrawals = WithdrawalService(self.storage, self.notifier, clock=self.clock)
        self.settlement = SettlementEngine(self.storage, self.payouts, self.notifier, clock=self.clock)
        self.claims = DailyClaimService(self.storage, clock=self.clock)
        self.vip = VipService(self.storage)
        self.deposits = DepositService(
            self.storage, self.payouts, self.referrals,
            ipn_secret=self.config.ipn_secret, clock=self.clock,
        )

        await self.auth.setup_admin(self.config.admin_email, self.config.admin_password)
        if not self.payouts.configured:
            logger.warning("No payout API key configured; approvals will fail into 'error'")
        logger.info("Services initialized (db=%s)", self.config.db_path)

    async def close(self):
        await self.notifier.drain()
        if self.storage:
            await self.storage.close()

    # -------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------

    async def start(self):
        """Initialize services and serve the API until stopped."""
        await self.initialize()

        config = uvicorn.Config(
            self.app,
            host="0.0.0.0",
            port=self.config.api_port,
            log_level="info",
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.config.api_port)
        try:
            await self._uvicorn_server.serve()
        finally:
            await self.close()

    async def stop(self):
        if self._uvicorn_server is not None:
            self._uvicorn_server.should_exit = True


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="VIP Membership Platform Server")
    parser.add_argument("--api-port", type=int, default=int(_env("VIP_API_PORT", "8080")),
                        help="REST API port (default: 8080, env VIP_API_PORT)")
    parser.add_argument("--db-path", default=_env("VIP_DB_PATH", "data/platform.db"),
                        help="SQLite database path (default: data/platform.db, env VIP_DB_PATH)")
    parser.add_argument("--jwt-secret", default=_env("VIP_JWT_SECRET"),
                        help="HS256 signing secret (env VIP_JWT_SECRET)")
    parser.add_argument("--admin-email", default=_env("VIP_ADMIN_EMAIL"),
                        help="Bootstrap admin email (env VIP_ADMIN_EMAIL)")
    parser.add_argument("--admin-password", default=_env("VIP_ADMIN_PASSWORD"),
                        help="Bootstrap admin password (env VIP_ADMIN_PASSWORD)")
    parser.add_argument("--payout-api-key", default=_env("NOWPAYMENTS_API_KEY"),
                        help="NOWPayments API key (env NOWPAYMENTS_API_KEY)")
    parser.add_argument("--payout-api-url", default=_env("NOWPAYMENTS_API_URL", DEFAULT_API_URL),
                        help="NOWPayments base URL (env NOWPAYMENTS_API_URL)")
    parser.add_argument("--ipn-secret", default=_env("NOWPAYMENTS_IPN_SECRET"),
                        help="IPN HMAC secret (env NOWPAYMENTS_IPN_SECRET)")
    parser.add_argument("--ipn-callback-url", default=_env("NOWPAYMENTS_IPN_CALLBACK_URL"),
                        help="Public URL of /api/deposits/ipn (env NOWPAYMENTS_IPN_CALLBACK_URL)")
    parser.add_argument("--telegram-token", default=_env("TELEGRAM_BOT_TOKEN"),
                        help="Telegram bot token (env TELEGRAM_BOT_TOKEN)")
    parser.add_argument("--telegram-chat-id", default=_env("TELEGRAM_CHAT_ID"),
                        help="Telegram chat for admin alerts (env TELEGRAM_CHAT_ID)")
    parser.add_argument("--dashboard-url", default=_env("VIP_DASHBOARD_URL"),
                        help="Admin dashboard link used in alerts (env VIP_DASHBOARD_URL)")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        api_port=args.api_port,
        db_path=args.db_path,
        jwt_secret=args.jwt_secret,
        admin_email=args.admin_email,
        admin_password=args.admin_password,
        payout_api_key=args.payout_api_key,
        payout_api_url=args.payout_api_url,
        ipn_secret=args.ipn_secret,
        ipn_callback_url=args.ipn_callback_url,
        telegram_token=args.telegram_token,
        telegram_chat_id=args.telegram_chat_id,
        dashboard_url=args.dashboard_url,
    )


def main():
    """CLI entry point for the platform server."""
    config = config_from_args(build_parser().parse_args())
    server = PlatformServer(config)

    logger.info("=" * 60)
    logger.info("  VIP Membership Platform %s", __version__)
    logger.info("  REST API:    http://localhost:%d", config.api_port)
    logger.info("  Database:    %s", config.db_path)
    logger.info("  Payouts:     %s", "configured" if config.payout_api_key else "not configured")
    logger.info("  Telegram:    %s", "enabled" if server.notifier.enabled else "disabled")
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
