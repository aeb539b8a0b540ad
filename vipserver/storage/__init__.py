from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .activity import ActivityLogRepo
from .claims import DailyClaimRepo
from .deposits import DepositRepo
from .profiles import ProfileRepo
from .referrals import ReferralRepo
from .settings import SettingsRepo
from .stats import PlatformStatsRepo
from .transactions import TransactionRepo
from .withdrawals import WithdrawalRepo, OPEN_STATUSES
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "OPEN_STATUSES",
    "ActivityLogRepo",
    "DailyClaimRepo",
    "DepositRepo",
    "ProfileRepo",
    "ReferralRepo",
    "SettingsRepo",
    "PlatformStatsRepo",
    "TransactionRepo",
    "WithdrawalRepo",
    "StorageManager",
]
