"""
ShopVault — Health endpoint

The database is required; the stock cache is optional and only reported.
"""
import asyncio
from typing import Awaitable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shopvault.api.deps import get_vault
from shopvault.db.container import ShopVault

router = APIRouter(tags=["health"])


async def _check_dependency(check: Awaitable, timeout: float) -> str:
    try:
        await asyncio.wait_for(check, timeout=timeout)
    except Exception as e:
        return f"error: {str(e)[:100]}"
    return "ok"


async def _ping_database(vault: ShopVault) -> None:
    async with vault.engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@router.get("/health")
async def health_check(vault: ShopVault = Depends(get_vault)):
    timeout = vault.settings.HEALTH_CHECK_TIMEOUT
    deps = {
        "database": await _check_dependency(_ping_database(vault), timeout),
        "redis": "disabled" if vault.redis is None else await _check_dependency(vault.redis.ping(), timeout),
    }
    healthy = deps["database"] == "ok"

    return JSONResponse(
        content={
            "status": "healthy" if healthy else "degraded",
            "service": vault.settings.SERVICE_NAME,
            "version": vault.settings.SERVICE_VERSION,
            "dependencies": deps,
        },
        status_code=200 if healthy else 503,
    )
