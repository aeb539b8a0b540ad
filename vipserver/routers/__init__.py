"""Router package: collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from vipserver.routers import (
    overview,
    account,
    withdrawals,
    admin,
    claims,
    vip,
    referrals,
    deposits,
)


def register_all_routers(app: FastAPI):
    app.include_router(overview.router)
    app.include_router(account.router)
    app.include_router(withdrawals.router)
    app.include_router(admin.router)
    app.include_router(claims.router)
    app.include_router(vip.router)
    app.include_router(referrals.router)
    app.include_router(deposits.router)
