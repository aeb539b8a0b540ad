"""Referrals router: /api/referrals/*."""

from fastapi import APIRouter, Depends
from starlette.requests import Request

from vipserver.deps import current_user, get_server

router = APIRouter()


@router.get("/api/referrals/summary")
async def referral_summary(request: Request, user: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.referrals.summary(user["user_id"], referral_code=user["referral_code"])
