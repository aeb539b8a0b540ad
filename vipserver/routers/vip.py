"""VIP router: /api/vip/*."""

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from vipserver import vip
from vipserver.auth import public_profile
from vipserver.deps import current_user, get_server
from vipserver.errors import VipError
from vipserver.models import VipUpgradeRequest

router = APIRouter()


@router.get("/api/vip/levels")
async def vip_levels():
    return vip.list_levels()


@router.post("/api/vip/upgrade")
async def vip_upgrade(request: Request, req: VipUpgradeRequest, user: dict = Depends(current_user)):
    srv = get_server(request)
    try:
        profile = await srv.vip.upgrade(user["user_id"], req.level)
    except VipError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return {"success": True, "profile": public_profile(profile)}
