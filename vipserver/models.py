"""Pydantic request models for the REST API."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    email: str
    password: str
    username: str = ""
    referral_code: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateWithdrawalRequest(BaseModel):
    """Body of POST /api/withdrawals.

    Every field is optional here so missing values are reported in the
    response envelope instead of as a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[float] = None
    currency: Optional[str] = None
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    network: Optional[str] = None


class SettleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    withdrawal_id: Optional[str] = Field(default=None, alias="withdrawalId")
    withdrawal_ids: List[str] = Field(default_factory=list, alias="withdrawalIds")


class DepositRequest(BaseModel):
    amount: float
    currency: str


class VipUpgradeRequest(BaseModel):
    level: int


class SettingsUpdateRequest(BaseModel):
    min_withdrawal: Optional[float] = None
    max_withdrawal: Optional[float] = None
    withdrawal_cooldown_hours: Optional[float] = None
    withdrawals_enabled: Optional[bool] = None
