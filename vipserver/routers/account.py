"""Account router: /api/auth/*, /api/profile, /api/transactions."""

from fastapi import APIRouter, Depends, HTTPException
from starlette.requests import Request

from vipserver.auth import public_profile
from vipserver.deps import current_user, get_server
from vipserver.models import LoginRequest, RegisterRequest

router = APIRouter()


@router.post("/api/auth/register")
async def auth_register(request: Request, req: RegisterRequest):
    srv = get_server(request)
    try:
        profile = await srv.auth.register(
            email=req.email,
            password=req.password,
            username=req.username,
            referral_code=req.referral_code,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "token": srv.auth.issue_jwt(profile["user_id"], profile["role"]),
        "profile": public_profile(profile),
    }


@router.post("/api/auth/login")
async def auth_login(request: Request, req: LoginRequest):
    srv = get_server(request)
    try:
        return await srv.auth.login(req.email, req.password)
    except KeyError:
        raise HTTPException(status_code=401, detail="Invalid email or password")


@router.get("/api/auth/me")
async def auth_me(user: dict = Depends(current_user)):
    return public_profile(user)


@router.get("/api/profile")
async def get_profile(request: Request, user: dict = Depends(current_user)):
    srv = get_server(request)
    profile = public_profile(user)
    profile["withdrawable"] = round(min(user["total_earned"], user["balance"]), 4)
    profile["has_open_withdrawal"] = await srv.storage.withdrawals.has_open(user["user_id"])
    return profile


@router.get("/api/transactions")
async def list_transactions(request: Request, limit: int = 50, user: dict = Depends(current_user)):
    srv = get_server(request)
    return await srv.storage.transactions.list_for_user(user["user_id"], limit=limit)
