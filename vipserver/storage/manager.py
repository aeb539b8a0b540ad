import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

try:
    import aiosqlite
except ImportError:
    raise ImportError(
        "aiosqlite is required for the storage layer. "
        "Install with: pip install aiosqlite"
    )

from ._schema import SCHEMA_VERSION
from ._migrate import run_migrations
from .activity import ActivityLogRepo
from .claims import DailyClaimRepo
from .deposits import DepositRepo
from .profiles import ProfileRepo
from .referrals import ReferralRepo
from .settings import SettingsRepo
from .stats import PlatformStatsRepo
from .transactions import TransactionRepo
from .withdrawals import WithdrawalRepo

logger = logging.getLogger("storage")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos."""

    def __init__(self, db_path: str = "platform.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()
        self.profiles: Optional[ProfileRepo] = None
        self.withdrawals: Optional[WithdrawalRepo] = None
        self.transactions: Optional[TransactionRepo] = None
        self.claims: Optional[DailyClaimRepo] = None
        self.activity: Optional[ActivityLogRepo] = None
        self.settings: Optional[SettingsRepo] = None
        self.referrals: Optional[ReferralRepo] = None
        self.deposits: Optional[DepositRepo] = None
        self.stats: Optional[PlatformStatsRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await run_migrations(self._db, logger)

        self.profiles = ProfileRepo(self._db)
        self.withdrawals = WithdrawalRepo(self._db)
        self.transactions = TransactionRepo(self._db)
        self.claims = DailyClaimRepo(self._db)
        self.activity = ActivityLogRepo(self._db)
        self.settings = SettingsRepo(self._db)
        self.referrals = ReferralRepo(self._db)
        self.deposits = DepositRepo(self._db)
        self.stats = PlatformStatsRepo(self._db)

        logger.info("Storage initialized: %s (schema v%d)", self.db_path, SCHEMA_VERSION)

    @asynccontextmanager
    async def transaction(self):
        """Run the enclosed repo writes as one IMMEDIATE transaction.

        Commits on normal exit, rolls back and re-raises on any exception.
        Writers are serialized because all repos share one connection.
        """
        async with self._write_lock:
            await self._db.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                await self._db.rollback()
                raise
            else:
                await self._db.commit()

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")
