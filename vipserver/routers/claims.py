"""Claims router: /api/claims/daily."""

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from vipserver.deps import current_user, get_server
from vipserver.errors import ClaimError

router = APIRouter()


@router.post("/api/claims/daily")
async def claim_daily(request: Request, user: dict = Depends(current_user)):
    srv = get_server(request)
    try:
        result = await srv.claims.claim(user["user_id"])
    except ClaimError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return {"success": True, **result}


@router.get("/api/claims/daily")
async def claim_status(request: Request, user: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.claims.status(user["user_id"])
