"""Withdrawals router: /api/withdrawals*.

The creation endpoint always answers 200 with a
{success, error?, code?, message?, withdrawal?} envelope; the UI reads the
outcome from the body, never from the status code.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import ValidationError
from starlette.requests import Request

from vipserver.deps import current_user, get_server
from vipserver.errors import PlatformError
from vipserver.models import CreateWithdrawalRequest

logger = logging.getLogger("api")

router = APIRouter()

INTERNAL_ERROR = {"success": False, "error": "An unexpected error occurred, please try again", "code": "internal_error"}
UNAUTHORIZED = {"success": False, "error": "Please sign in first", "code": "unauthorized"}


async def read_envelope_body(request: Request, model):
    """Parse a JSON body into ``model``; returns (model, None) or (None, error_envelope)."""
    try:
        payload = await request.json()
    except ValueError:
        return None, {"success": False, "error": "Invalid request body", "code": "invalid_request"}
    if not isinstance(payload, dict):
        return None, {"success": False, "error": "Invalid request body", "code": "invalid_request"}
    try:
        return model.model_validate(payload), None
    except ValidationError:
        return None, {"success": False, "error": "Invalid request body", "code": "invalid_request"}


@router.post("/api/withdrawals")
async def create_withdrawal(request: Request, authorization: str = Header(default="")):
    srv = get_server(request)
    user = await srv.auth.resolve_account(authorization)
    if user is None:
        return UNAUTHORIZED

    req, error = await read_envelope_body(request, CreateWithdrawalRequest)
    if error is not None:
        return error

    try:
        withdrawal = await srv.withdrawals.create_withdrawal(
            user["user_id"],
            req.amount,
            req.currency,
            req.wallet_address,
            network=req.network,
        )
    except PlatformError as e:
        return e.to_dict()
    except Exception:
        logger.exception("Withdrawal creation failed for %s", user["user_id"])
        return INTERNAL_ERROR
    return {
        "success": True,
        "message": "Withdrawal request submitted and awaiting review",
        "withdrawal": withdrawal,
    }


@router.get("/api/withdrawals")
async def list_withdrawals(request: Request, limit: int = 50, user: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.withdrawals.list_for_user(user["user_id"], limit=limit)


@router.get("/api/withdrawals/eligibility")
async def withdrawal_eligibility(
    request: Request,
    amount: Optional[float] = None,
    user: dict = Depends(current_user),
):
    srv = get_server(request)
    try:
        return await srv.withdrawals.get_eligibility(user["user_id"], amount=amount)
    except KeyError:
        raise HTTPException(status_code=404, detail="Profile not found")
