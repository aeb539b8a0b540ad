"""Dependency helpers for router modules."""

from fastapi import Header
from starlette.requests import Request


def get_server(request: Request):
    return request.app.state.server


async def current_user(request: Request, authorization: str = Header(default="")) -> dict:
    return await get_server(request).auth.current_user(authorization)


async def require_admin(request: Request, authorization: str = Header(default="")) -> dict:
    return await get_server(request).auth.require_admin(authorization)
