"""Admin router: /api/admin/* settlement, activity log and settings."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from starlette.requests import Request

from vipserver import settings as platform_settings
from vipserver.deps import get_server, require_admin
from vipserver.errors import PlatformError
from vipserver.models import SettingsUpdateRequest, SettleRequest
from vipserver.routers.withdrawals import INTERNAL_ERROR, UNAUTHORIZED, read_envelope_body

logger = logging.getLogger("api")

router = APIRouter()

SETTLE_ACTIONS = ("approve", "reject", "retry", "mass_payout")


@router.post("/api/admin/withdrawals/settle")
async def settle_withdrawal(request: Request, authorization: str = Header(default="")):
    """Approve, reject, retry or mass-pay withdrawals. Always 200 with an envelope."""
    srv = get_server(request)
    caller = await srv.auth.resolve_account(authorization)
    if caller is None:
        return UNAUTHORIZED
    if caller["role"] != "admin":
        return {"success": False, "error": "Admin access required", "code": "forbidden"}

    req, error = await read_envelope_body(request, SettleRequest)
    if error is not None:
        return error
    if req.action not in SETTLE_ACTIONS:
        return {"success": False, "error": "Invalid action", "code": "invalid_action"}

    admin_id = caller["user_id"]
    try:
        if req.action == "mass_payout":
            if not req.withdrawal_ids:
                return {"success": False, "error": "No withdrawals selected", "code": "missing_fields"}
            return await srv.settlement.mass_payout(req.withdrawal_ids, admin_id=admin_id)

        if not req.withdrawal_id:
            return {"success": False, "error": "Withdrawal id is required", "code": "missing_fields"}
        if req.action == "approve":
            return await srv.settlement.approve(req.withdrawal_id, admin_id=admin_id)
        if req.action == "retry":
            return await srv.settlement.retry(req.withdrawal_id, admin_id=admin_id)
        return await srv.settlement.reject(req.withdrawal_id, admin_id=admin_id)
    except PlatformError as e:
        return e.to_dict()
    except Exception:
        logger.exception("Settlement action %s failed", req.action)
        return INTERNAL_ERROR


@router.get("/api/admin/withdrawals")
async def admin_list_withdrawals(
    request: Request,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    admin: dict = Depends(require_admin),
):
    srv = get_server(request)
    return await srv.settlement.list_withdrawals(status=status, limit=limit, offset=offset)


@router.get("/api/admin/activity-logs")
async def admin_activity_logs(
    request: Request,
    limit: int = 100,
    target_id: Optional[str] = None,
    admin: dict = Depends(require_admin),
):
    srv = get_server(request)
    return await srv.storage.activity.list_recent(limit=limit, target_id=target_id)


@router.get("/api/admin/settings")
async def admin_get_settings(request: Request, admin: dict = Depends(require_admin)):
    srv = get_server(request)
    snapshot = await platform_settings.load_snapshot(srv.storage)
    return snapshot.to_dict()


@router.put("/api/admin/settings")
async def admin_update_settings(
    request: Request,
    req: SettingsUpdateRequest,
    admin: dict = Depends(require_admin),
):
    srv = get_server(request)
    try:
        snapshot = await platform_settings.apply_update(
            srv.storage, req.model_dump(exclude_none=True), admin_id=admin["user_id"],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return snapshot.to_dict()
