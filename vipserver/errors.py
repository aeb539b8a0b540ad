"""Business-rule errors carrying a stable code and a user-facing message."""


class PlatformError(ValueError):
    code = "error"

    def __init__(self, message: str, code: str = "", **extra):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code, **self.extra}


class WithdrawalError(PlatformError):
    code = "withdrawal_invalid"


class SettlementError(PlatformError):
    code = "settlement_invalid"


class ClaimError(PlatformError):
    code = "claim_invalid"


class VipError(PlatformError):
    code = "vip_invalid"


class DepositError(PlatformError):
    code = "deposit_invalid"
