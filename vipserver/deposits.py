"""
deposits.py - Crypto deposit invoices and provider confirmations.

create_invoice() opens a payment with the provider and stores the invoice.
handle_ipn() consumes the provider's instant payment notification: the body is
authenticated with HMAC-SHA512 over its key-sorted JSON, and a finished
payment credits the spendable balance exactly once. Deposited principal never
counts toward total_earned, so it can be spent on VIP levels but not withdrawn.
"""

import hashlib
import hmac
import json
import logging
import time
import uuid
from typing import TYPE_CHECKING, Callable

from vipserver.errors import DepositError
from vipserver.payouts import PaymentGatewayError

if TYPE_CHECKING:
    from vipserver.payouts import NowPaymentsClient
    from vipserver.referrals import ReferralService
    from vipserver.storage import StorageManager

logger = logging.getLogger("deposits")

CREDIT_STATUSES = ("finished", "confirmed")


def sign_ipn_payload(payload: dict, secret: str) -> str:
    message = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest()


def verify_ipn_signature(payload: dict, signature: str, secret: str) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_ipn_payload(payload, secret), signature.lower())


class DepositService:
    def __init__(
        self,
        storage: "StorageManager",
        gateway: "NowPaymentsClient",
        referrals: "ReferralService",
        ipn_secret: str = "",
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._gateway = gateway
        self._referrals = referrals
        self._ipn_secret = ipn_secret
        self._clock = clock

    async def create_invoice(self, user_id: str, amount, currency: str) -> dict:
        try:
            amount = round(float(amount), 2)
        except (TypeError, ValueError):
            raise DepositError("Invalid amount", code="invalid_amount")
        if not amount > 0:
            raise DepositError("Invalid amount", code="invalid_amount")
        if not currency:
            raise DepositError("Currency is required", code="missing_currency")

        order_id = f"DEP-{user_id[:8]}-{int(self._clock() * 1000)}"
        try:
            payment = await self._gateway.create_payment(
                amount, currency, order_id, f"Deposit ${amount:.2f}",
            )
        except PaymentGatewayError as e:
            logger.warning("Deposit invoice for %s failed: %s", user_id, e)
            raise DepositError(str(e), code="gateway_error")

        pay_amount = payment.get("pay_amount")
        if pay_amount is not None and currency.lower().startswith(("usdt", "usdc")):
            pay_amount = round(float(pay_amount), 2)
        payment_id = payment.get("payment_id")

        deposit_id = str(uuid.uuid4())
        async with self._storage.transaction():
            await self._storage.deposits.create(
                deposit_id,
                user_id,
                order_id,
                str(payment_id) if payment_id is not None else None,
                amount,
                pay_amount,
                currency.upper(),
                (payment.get("network") or currency).upper(),
                payment.get("pay_address") or "",
                payment_status=payment.get("payment_status") or "waiting",
            )
        logger.info("Deposit invoice %s opened for %s: $%.2f in %s",
                    order_id, user_id, amount, currency.upper())
        return await self._storage.deposits.get(deposit_id)

    async def handle_ipn(self, payload: dict, signature: str) -> dict:
        if not verify_ipn_signature(payload, signature, self._ipn_secret):
            raise DepositError("Invalid signature", code="invalid_signature")

        payment_id = payload.get("payment_id")
        deposit = await self._storage.deposits.find(
            payment_id=str(payment_id) if payment_id is not None else "",
            order_id=payload.get("order_id") or "",
        )
        if deposit is None:
            raise DepositError("Unknown deposit", code="not_found")

        status = str(payload.get("payment_status") or "").lower()
        credited = False
        async with self._storage.transaction():
            if status:
                await self._storage.deposits.set_status(deposit["id"], status)
            if status in CREDIT_STATUSES and await self._storage.deposits.mark_credited(deposit["id"]):
                amount = deposit["amount_usd"]
                await self._storage.profiles.adjust(deposit["user_id"], balance_delta=amount)
                await self._storage.transactions.record(
                    deposit["user_id"], "deposit", amount,
                    description=f"Deposit {deposit['currency']}",
                    reference_id=deposit["id"],
                )
                await self._referrals.distribute_commission(deposit["user_id"], deposit["id"], amount)
                credited = True

        if credited:
            logger.info("Deposit %s credited: $%.2f to %s",
                        deposit["order_id"], deposit["amount_usd"], deposit["user_id"])
        else:
            logger.info("Deposit %s status -> %s", deposit["order_id"], status or "unchanged")
        return {"success": True, "credited": credited, "status": status}

    async def list_for_user(self, user_id: str, limit: int = 50) -> list:
        return await self._storage.deposits.list_for_user(user_id, limit=limit)
