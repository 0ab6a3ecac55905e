"""
System routes: health, status and Redis introspection.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from ...core.config import settings
from ...core.redis import HealthStatus, check_redis_health, get_redis_info, is_redis_available
from ..cache.service import cache_service

system_router = APIRouter(prefix="/system", tags=["system"])


@system_router.get("/health")
async def health_check():
    """
    Redis health and cache statistics.

    The service keeps serving from the memory cache when Redis is down,
    so this endpoint reports ``degraded`` instead of failing.
    """
    redis_health = await check_redis_health()
    cache_stats = await cache_service.get_stats()

    return JSONResponse(
        status_code=200,
        content={
            "status": "ok" if redis_health.status == HealthStatus.HEALTHY else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "redis": redis_health.model_dump(mode="json", exclude_none=True),
            "cache": cache_stats.model_dump(by_alias=True),
        }
    )


@system_router.get("/redis/info")
async def redis_info(section: Optional[str] = Query(None, description="INFO section, e.g. memory")):
    """
    Redis server INFO for debugging.
    """
    info = await get_redis_info(section)
    return JSONResponse(
        status_code=200,
        content={
            "available": is_redis_available(),
            "info": info,
        }
    )


@system_router.get("/")
async def root():
    """
    API root.
    """
    return JSONResponse(
        status_code=200,
        content={
            "message": settings.APP_NAME,
            "status": "running",
            "version": settings.APP_VERSION
        }
    )


@system_router.get("/status")
async def status_check():
    return JSONResponse(
        status_code=200,
        content={
            "status": "active",
            "service": "palytt-backend",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "redis": "connected" if is_redis_available() else "not available (using memory fallback)"
        }
    )
