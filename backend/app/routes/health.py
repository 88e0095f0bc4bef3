"""
Health routes — readiness and liveness endpoints.

Version: 1.0.0
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.container import get_health_service

router = APIRouter(tags=["health"])


@router.get("/health/live")
async def liveness():
    """Basic liveness endpoint."""
    return {"status": "alive"}


@router.get("/health")
async def health_check():
    """Database, job queue and rate limiter health."""
    health = get_health_service().get_health()
    status_code = 503 if health["status"] == "unhealthy" else 200
    return JSONResponse(content=health, status_code=status_code)


@router.get("/health/connections/{connection_id}")
async def connection_health(connection_id: str, hours: int = 24):
    """Error rate of one connection's audit log."""
    return get_health_service().connection_error_rate(connection_id, hours)
