"""
test_settlement.py - Admin settlement of withdrawal requests.

Tests settlement flows against real SQLite with a scripted payout provider:
 - approve: pending -> completed, or -> error on provider failure
 - reject: pending -> rejected with balance-only refund
 - retry: error -> pending -> completed / error
 - mass payout: per-item outcomes plus one summary activity entry
"""

import asyncio

import pytest
import pytest_asyncio

from vipserver.errors import SettlementError
from vipserver.settlement import PAYOUT_INTERRUPTED, SettlementEngine

from .conftest import WALLET, make_profile, make_pending_withdrawal

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def engine(storage, payouts, notifier, clock):
    return SettlementEngine(storage, payouts, notifier, clock=clock)


@pytest_asyncio.fixture
async def funded_user(storage):
    return await make_profile(storage, balance=100.0, total_earned=50.0)


async def _actions(storage, target_id=None):
    return [entry["action"] for entry in await storage.activity.list_recent(target_id=target_id)]


class TestApprove:

    async def test_success_completes_and_settles_ledger(self, storage, engine, payouts, notifier, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)

        result = await engine.approve(wid, admin_id="admin-1")

        assert result["success"] is True
        assert result["payout"] == {"id": "po-1", "hash": "0xhash1"}
        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "completed"
        assert withdrawal["payout_id"] == "po-1"
        assert withdrawal["tx_hash"] == "0xhash1"
        assert withdrawal["error_message"] is None
        assert withdrawal["processed_at"] is not None

        ledger = await storage.transactions.list_for_reference(wid)
        assert [tx["status"] for tx in ledger] == ["completed"]

        assert payouts.payout_calls == [{"address": WALLET, "currency": "USDT", "amount": 30.0}]
        assert await _actions(storage, wid) == ["WITHDRAWAL_APPROVED"]
        assert (wid, "completed", "") in notifier.status_changes

    async def test_approval_never_touches_balance(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.approve(wid)
        profile = await storage.profiles.get(funded_user)
        assert profile["balance"] == pytest.approx(70.0)
        assert profile["total_earned"] == pytest.approx(20.0)

    async def test_provider_failure_moves_to_error(self, storage, engine, payouts, funded_user):
        payouts.fail_next("Insufficient payout balance")
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)

        result = await engine.approve(wid, admin_id="admin-1")

        assert result["success"] is False
        assert result["error"] == "Insufficient payout balance"
        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "error"
        assert withdrawal["error_message"] == "Insufficient payout balance"
        assert withdrawal["payout_id"] is None
        # Funds stay deducted until an admin retries or investigates
        assert (await storage.profiles.get(funded_user))["balance"] == pytest.approx(70.0)
        ledger = await storage.transactions.list_for_reference(wid)
        assert [tx["status"] for tx in ledger] == ["pending"]
        assert await _actions(storage, wid) == ["WITHDRAWAL_ERROR"]

    async def test_provider_exception_is_recorded(self, storage, engine, payouts, funded_user):
        payouts.raise_next = ConnectionError("connection reset")
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        result = await engine.approve(wid)
        assert result["success"] is False
        assert (await storage.withdrawals.get(wid))["error_message"] == "connection reset"

    async def test_cancelled_payout_is_released_to_error(self, storage, engine, payouts, funded_user):
        payouts.raise_next = asyncio.CancelledError()
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)

        with pytest.raises(asyncio.CancelledError):
            await engine.approve(wid)

        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "error"
        assert withdrawal["error_message"] == PAYOUT_INTERRUPTED
        assert await storage.withdrawals.has_open(funded_user) is False

        result = await engine.retry(wid)
        assert result["success"] is True
        assert (await storage.withdrawals.get(wid))["status"] == "completed"

    async def test_failed_completion_commit_is_released_to_error(
        self, storage, engine, funded_user, monkeypatch,
    ):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)

        async def broken(*args, **kwargs):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr(storage.transactions, "set_status_for_reference", broken)
        with pytest.raises(RuntimeError):
            await engine.approve(wid)

        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "error"
        assert withdrawal["error_message"] == PAYOUT_INTERRUPTED

    async def test_second_approve_is_refused(self, storage, engine, payouts, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.approve(wid)
        with pytest.raises(SettlementError) as exc:
            await engine.approve(wid)
        assert exc.value.code == "already_processed"
        assert len(payouts.payout_calls) == 1

    async def test_unknown_withdrawal(self, engine):
        with pytest.raises(SettlementError) as exc:
            await engine.approve("missing")
        assert exc.value.code == "not_found"


class TestReject:

    async def test_refunds_balance_only(self, storage, engine, notifier, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)

        result = await engine.reject(wid, admin_id="admin-1")

        assert result["success"] is True
        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "rejected"
        profile = await storage.profiles.get(funded_user)
        assert profile["balance"] == pytest.approx(100.0)
        assert profile["total_earned"] == pytest.approx(20.0)

        ledger = await storage.transactions.list_for_reference(wid)
        by_type = {tx["type"]: tx for tx in ledger}
        assert by_type["withdrawal"]["status"] == "rejected"
        assert by_type["deposit"]["amount"] == pytest.approx(30.0)
        assert by_type["deposit"]["status"] == "completed"

        logs = await storage.activity.list_recent(target_id=wid)
        assert logs[0]["action"] == "WITHDRAWAL_REJECTED"
        assert logs[0]["details"] == {"amount": 30.0, "refunded": True}
        assert logs[0]["admin_id"] == "admin-1"
        assert (wid, "rejected", "") in notifier.status_changes

    async def test_reject_twice_refunds_once(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.reject(wid)
        with pytest.raises(SettlementError):
            await engine.reject(wid)
        assert (await storage.profiles.get(funded_user))["balance"] == pytest.approx(100.0)

    async def test_cannot_reject_completed(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.approve(wid)
        with pytest.raises(SettlementError) as exc:
            await engine.reject(wid)
        assert exc.value.code == "already_processed"

    async def test_rejection_frees_the_open_request_slot(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        assert await storage.withdrawals.has_open(funded_user) is True
        await engine.reject(wid)
        assert await storage.withdrawals.has_open(funded_user) is False


class TestRetry:

    async def test_retry_after_error_succeeds(self, storage, engine, payouts, funded_user):
        payouts.fail_next("Temporary outage")
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.approve(wid)

        result = await engine.retry(wid, admin_id="admin-1")

        assert result["success"] is True
        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "completed"
        assert withdrawal["error_message"] is None
        assert withdrawal["payout_id"] == "po-2"
        assert await _actions(storage, wid) == ["WITHDRAWAL_RETRY_SUCCESS", "WITHDRAWAL_ERROR"]

    async def test_retry_failing_again(self, storage, engine, payouts, funded_user):
        payouts.fail_next("first")
        payouts.fail_next("second")
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        await engine.approve(wid)

        result = await engine.retry(wid)

        assert result["success"] is False
        withdrawal = await storage.withdrawals.get(wid)
        assert withdrawal["status"] == "error"
        assert withdrawal["error_message"] == "second"
        assert await _actions(storage, wid) == ["WITHDRAWAL_RETRY_FAILED", "WITHDRAWAL_ERROR"]

    async def test_retry_blocked_by_newer_open_request(self, storage, engine, payouts, funded_user):
        payouts.fail_next("outage")
        failed = await make_pending_withdrawal(storage, funded_user, 10.0)
        await engine.approve(failed)
        await make_pending_withdrawal(storage, funded_user, 10.0)
        with pytest.raises(SettlementError) as exc:
            await engine.retry(failed)
        assert exc.value.code == "open_request"
        assert (await storage.withdrawals.get(failed))["status"] == "error"

    async def test_only_errors_are_retryable(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        with pytest.raises(SettlementError) as exc:
            await engine.retry(wid)
        assert exc.value.code == "not_retryable"


class TestMassPayout:

    async def test_mixed_outcomes(self, storage, engine, payouts):
        users = [await make_profile(storage, balance=100.0, total_earned=100.0) for _ in range(3)]
        ids = [await make_pending_withdrawal(storage, uid, 10.0) for uid in users]
        await engine.reject(ids[2])
        payouts.fail_next("bad address")

        result = await engine.mass_payout(ids + ["missing", ids[1]], admin_id="admin-1")

        assert result["success"] is True
        by_id = {r["id"]: r for r in result["results"]}
        assert len(result["results"]) == 4
        assert by_id[ids[0]] == {"id": ids[0], "success": False, "error": "bad address"}
        assert by_id[ids[1]] == {"id": ids[1], "success": True}
        assert by_id[ids[2]]["error"] == "Not found or not pending"
        assert by_id["missing"]["error"] == "Not found or not pending"

        assert (await storage.withdrawals.get(ids[0]))["status"] == "error"
        assert (await storage.withdrawals.get(ids[1]))["status"] == "completed"

        logs = await storage.activity.list_recent()
        summary = [entry for entry in logs if entry["action"] == "MASS_PAYOUT"]
        assert len(summary) == 1
        assert summary[0]["details"] == {"total": 4, "success": 1, "failed": 3}
        # Per-item approvals are not logged individually
        assert "WITHDRAWAL_APPROVED" not in [entry["action"] for entry in logs]


class TestListing:

    async def test_filter_by_status_with_owner(self, storage, engine, funded_user):
        wid = await make_pending_withdrawal(storage, funded_user, 30.0)
        other = await make_profile(storage, balance=50.0, total_earned=50.0)
        done = await make_pending_withdrawal(storage, other, 5.0)
        await engine.approve(done)

        page = await engine.list_withdrawals(status="pending")

        assert page["total"] == 1
        assert [item["id"] for item in page["items"]] == [wid]
        assert page["items"][0]["email"].endswith("@example.com")
