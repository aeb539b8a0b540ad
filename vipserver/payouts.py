"""
payouts.py - Payment gateway client (NOWPayments).

Two calls are used by the platform:
  - POST /payout  : send funds to a user's wallet (withdrawal approval)
  - POST /payment : open a deposit invoice with a pay-in address

Provider and transport failures are returned as values, never raised, so the
settlement engine can record them on the withdrawal row.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger("payouts")

DEFAULT_API_URL = "https://api.nowpayments.io/v1"
REQUEST_TIMEOUT = 30.0


@dataclass
class PayoutResult:
    success: bool
    payout_id: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    raw: Optional[dict] = None


class PaymentGatewayError(RuntimeError):
    pass


class NowPaymentsClient:
    """Thin async wrapper around the NOWPayments REST API."""

    def __init__(
        self,
        api_key: str = "",
        api_url: str = DEFAULT_API_URL,
        ipn_callback_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._ipn_callback_url = ipn_callback_url
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_url,
            headers={"x-api-key": self._api_key, "Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
            transport=self._transport,
        )

    async def create_payout(self, address: str, currency: str, amount: float) -> PayoutResult:
        if not self.configured:
            return PayoutResult(success=False, error="Payout provider not configured")

        body = {
            "address": address,
            "currency": currency.lower(),
            "amount": amount,
        }
        if self._ipn_callback_url:
            body["ipn_callback_url"] = self._ipn_callback_url

        logger.info("Requesting payout of %.2f %s to %s...", amount, currency.upper(), address[:8])
        try:
            async with self._client() as client:
                response = await client.post("/payout", json=body)
        except httpx.HTTPError as e:
            logger.warning("Payout request failed: %s", e)
            return PayoutResult(success=False, error=str(e) or "API connection failed")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success and data.get("id"):
            return PayoutResult(
                success=True,
                payout_id=str(data["id"]),
                tx_hash=data.get("hash"),
                raw=data,
            )

        error = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
        logger.warning("Payout rejected by provider: %s", error)
        return PayoutResult(success=False, error=str(error), raw=data)

    async def create_payment(self, amount_usd: float, currency: str, order_id: str, description: str) -> dict:
        """Open a deposit invoice. Raises PaymentGatewayError on failure."""
        if not self.configured:
            raise PaymentGatewayError("Payment provider not configured")

        body = {
            "price_amount": amount_usd,
            "price_currency": "usd",
            "pay_currency": currency.lower(),
            "order_id": order_id,
            "order_description": description,
        }
        if self._ipn_callback_url:
            body["ipn_callback_url"] = self._ipn_callback_url

        try:
            async with self._client() as client:
                response = await client.post("/payment", json=body)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise PaymentGatewayError(f"Payment API error: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise PaymentGatewayError(f"Payment API unavailable: {e}") from e
