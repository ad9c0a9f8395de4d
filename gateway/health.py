"""Health and readiness endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gateway.api.deps import get_cache
from gateway.store.cache import CacheClient

router = APIRouter()


async def _cache_ok(cache: CacheClient | None) -> bool:
    if cache is None:
        return False
    return await cache.ping()


@router.get("/health")
async def health(cache: CacheClient | None = Depends(get_cache)):
    """Health check: the gateway is up whenever it answers; the cache may be degraded."""
    cache_ok = await _cache_ok(cache)
    return {
        "status": "healthy" if cache_ok else "degraded",
        "gateway": "up",
        "cache": "up" if cache_ok else "down",
    }


@router.get("/ready")
async def ready(cache: CacheClient | None = Depends(get_cache)):
    """Readiness check: returns 200 only when the cache connection is established."""
    if await _cache_ok(cache):
        return {"status": "ready"}
    return JSONResponse(status_code=503, content={"status": "not_ready", "cache": "down"})
