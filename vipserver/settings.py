"""
settings.py - Admin-tunable limits as an immutable snapshot.

The admin_settings table is read once per request and frozen into a
SettingsSnapshot that is passed to the withdrawal policy. Missing or
malformed keys fall back to the defaults below.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger("settings")

DEFAULT_MIN_WITHDRAWAL = 2.0
DEFAULT_MAX_WITHDRAWAL = 1000.0
DEFAULT_COOLDOWN_HOURS = 24.0

KNOWN_KEYS = (
    "min_withdrawal",
    "max_withdrawal",
    "withdrawal_cooldown_hours",
    "withdrawals_enabled",
    "withdrawal_limits",
)
EDITABLE_KEYS = KNOWN_KEYS[:4]


def _as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric setting value %r, using default %s", value, default)
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    logger.warning("Unrecognized boolean setting %r, using default %s", value, default)
    return default


@dataclass(frozen=True)
class SettingsSnapshot:
    min_withdrawal: float = DEFAULT_MIN_WITHDRAWAL
    max_withdrawal: float = DEFAULT_MAX_WITHDRAWAL
    cooldown_hours: float = DEFAULT_COOLDOWN_HOURS
    withdrawals_enabled: bool = True

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SettingsSnapshot":
        # Older deployments kept both limits under one key
        legacy = values.get("withdrawal_limits")
        legacy = legacy if isinstance(legacy, Mapping) else {}

        min_value = values.get("min_withdrawal", legacy.get("min"))
        max_value = values.get("max_withdrawal", legacy.get("max"))
        return cls(
            min_withdrawal=_as_float(min_value, DEFAULT_MIN_WITHDRAWAL),
            max_withdrawal=_as_float(max_value, DEFAULT_MAX_WITHDRAWAL),
            cooldown_hours=_as_float(values.get("withdrawal_cooldown_hours"), DEFAULT_COOLDOWN_HOURS),
            withdrawals_enabled=_as_bool(values.get("withdrawals_enabled"), True),
        )

    def to_dict(self) -> dict:
        """Keyed like the admin_settings rows, so it round-trips through the admin API."""
        return {
            "min_withdrawal": self.min_withdrawal,
            "max_withdrawal": self.max_withdrawal,
            "withdrawal_cooldown_hours": self.cooldown_hours,
            "withdrawals_enabled": self.withdrawals_enabled,
        }


async def load_snapshot(storage) -> SettingsSnapshot:
    return SettingsSnapshot.from_mapping(await storage.settings.get_all())


async def apply_update(storage, changes: Mapping[str, Any],
                       admin_id: Optional[str] = None) -> SettingsSnapshot:
    """Persist admin changes to the limits and log a SETTINGS_UPDATE entry.

    Raises ValueError for non-finite or negative values or a minimum above
    the maximum.
    """
    changes = {k: v for k, v in changes.items() if k in EDITABLE_KEYS and v is not None}
    for key, value in changes.items():
        if key == "withdrawals_enabled":
            continue
        if not math.isfinite(float(value)):
            raise ValueError(f"{key} must be a finite number")
        if float(value) < 0:
            raise ValueError(f"{key} cannot be negative")

    async with storage.transaction():
        current = SettingsSnapshot.from_mapping(await storage.settings.get_all())
        min_value = changes.get("min_withdrawal", current.min_withdrawal)
        max_value = changes.get("max_withdrawal", current.max_withdrawal)
        if min_value > max_value:
            raise ValueError("Minimum withdrawal cannot exceed the maximum")
        for key, value in changes.items():
            await storage.settings.set(key, value)
        await storage.activity.record("SETTINGS_UPDATE", admin_id=admin_id, details=dict(changes))
        updated = SettingsSnapshot.from_mapping(await storage.settings.get_all())

    logger.info("Admin settings updated by %s: %s", admin_id, changes)
    return updated
