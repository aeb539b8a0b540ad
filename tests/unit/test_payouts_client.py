"""
test_payouts_client.py - NowPaymentsClient against an httpx.MockTransport.

Provider and transport failures must come back as PayoutResult values,
never as exceptions.
"""

import json

import httpx
import pytest

from vipserver.payouts import NowPaymentsClient, PaymentGatewayError

from .conftest import WALLET

pytestmark = pytest.mark.asyncio


def _client(handler, api_key="test-key", **kwargs):
    return NowPaymentsClient(api_key=api_key, transport=httpx.MockTransport(handler), **kwargs)


class TestCreatePayout:

    async def test_success(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            return httpx.Response(200, json={"id": 5003, "hash": "0xabc"})

        client = _client(handler, ipn_callback_url="https://example.com/ipn")
        result = await client.create_payout(WALLET, "USDT", 30.0)

        assert result.success is True
        assert result.payout_id == "5003"
        assert result.tx_hash == "0xabc"
        request = seen[0]
        assert request.url.path == "/v1/payout"
        assert request.headers["x-api-key"] == "test-key"
        assert json.loads(request.content) == {
            "address": WALLET,
            "currency": "usdt",
            "amount": 30.0,
            "ipn_callback_url": "https://example.com/ipn",
        }

    async def test_not_configured(self):
        def handler(request):
            raise AssertionError("no request expected")

        result = await _client(handler, api_key="").create_payout(WALLET, "USDT", 30.0)
        assert result.success is False
        assert result.error == "Payout provider not configured"

    async def test_provider_rejection(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Invalid address"})

        result = await _client(handler).create_payout(WALLET, "USDT", 30.0)
        assert result.success is False
        assert result.error == "Invalid address"

    async def test_success_status_without_id(self):
        def handler(request):
            return httpx.Response(200, json={"status": "queued"})

        result = await _client(handler).create_payout(WALLET, "USDT", 30.0)
        assert result.success is False
        assert result.error == "HTTP 200"

    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad gateway</html>")

        result = await _client(handler).create_payout(WALLET, "USDT", 30.0)
        assert result.success is False
        assert result.error == "HTTP 502"

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _client(handler).create_payout(WALLET, "USDT", 30.0)
        assert result.success is False
        assert "connection refused" in result.error


class TestCreatePayment:

    async def test_success(self):
        def handler(request):
            body = json.loads(request.content)
            assert request.url.path == "/v1/payment"
            assert body["price_currency"] == "usd"
            assert body["pay_currency"] == "usdttrc20"
            return httpx.Response(201, json={"payment_id": 77, "pay_address": "TPay"})

        payment = await _client(handler).create_payment(25.0, "USDTTRC20", "DEP-1", "Deposit $25.00")
        assert payment["payment_id"] == 77

    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(500, json={"message": "boom"})

        with pytest.raises(PaymentGatewayError, match="500"):
            await _client(handler).create_payment(25.0, "usdt", "DEP-1", "Deposit")

    async def test_not_configured_raises(self):
        with pytest.raises(PaymentGatewayError):
            await _client(lambda r: httpx.Response(200), api_key="").create_payment(1.0, "usdt", "o", "d")
