"""Deposits router: /api/deposits and the provider IPN callback."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from starlette.requests import Request

from vipserver.deps import current_user, get_server
from vipserver.errors import DepositError
from vipserver.models import DepositRequest

logger = logging.getLogger("api")

router = APIRouter()


@router.post("/api/deposits")
async def create_deposit(request: Request, req: DepositRequest, user: dict = Depends(current_user)):
    srv = get_server(request)
    try:
        deposit = await srv.deposits.create_invoice(user["user_id"], req.amount, req.currency)
    except DepositError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return {"success": True, "deposit": deposit}


@router.get("/api/deposits")
async def list_deposits(request: Request, limit: int = 50, user: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.deposits.list_for_user(user["user_id"], limit=limit)


@router.post("/api/deposits/ipn")
async def deposit_ipn(request: Request, x_nowpayments_sig: str = Header(default="")):
    srv = get_server(request)
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid request body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid request body")
    try:
        return await srv.deposits.handle_ipn(payload, x_nowpayments_sig)
    except DepositError as e:
        logger.warning("Rejected IPN callback: %s", e.message)
        status_code = 401 if e.code == "invalid_signature" else 404
        raise HTTPException(status_code=status_code, detail=e.to_dict())
