"""
Unauthenticated probes for load balancers and uptime checks.

/health only proves the process answers. /health/redis also reports whether
the async pool can reach Redis; it always returns 200 so that a Redis outage
shows up in the body instead of taking the API out of rotation.
"""

from fastapi import APIRouter
from redis.exceptions import RedisError

from feelsy.core.config import get_settings
from feelsy.core.redis import get_redis

SERVICE_NAME = "feelsy-api"

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/health/redis")
async def redis_health_check():
    """Report Redis reachability; never raises."""
    try:
        await get_redis().ping()
    except (RedisError, RuntimeError, OSError) as e:
        # RuntimeError: lifespan has not initialized the pool yet
        return {"status": "unhealthy", "service": "redis", "error": str(e)}
    return {"status": "healthy", "service": "redis"}


@router.get("/")
async def root():
    return {"message": f"Welcome to {get_settings().app_name}", "docs": "/docs"}
