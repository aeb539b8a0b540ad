"""Overview router: service banner and public platform stats."""

from fastapi import APIRouter
from starlette.requests import Request

from vipserver import __version__
from vipserver.deps import get_server

router = APIRouter()


@router.get("/")
async def root(request: Request):
    srv = get_server(request)
    return {
        "service": "VIP Membership Platform",
        "version": __version__,
        "api_port": srv.config.api_port,
        "payouts_configured": srv.payouts.configured,
        "uptime": "running",
    }


@router.get("/api/stats")
async def platform_stats(request: Request):
    srv = get_server(request)
    stats = await srv.storage.stats.get()
    stats["pending_withdrawals"] = await srv.storage.withdrawals.count(status="pending")
    return stats
