"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from dental_clinic.config import settings
from dental_clinic.core.calendar import clinic_today
from dental_clinic.core.redis_client import check_redis_connection
from dental_clinic.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health including dependencies and scheduling state."""

    database: str
    redis: str
    expiry_sweep: str
    clinic_date: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health check with database and Redis status.

    The service is ``degraded`` rather than down when Redis is unreachable,
    since the cache fails open. A database outage makes it ``unhealthy``.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    if not db_healthy:
        overall = "unhealthy"
    elif not redis_healthy:
        overall = "degraded"
    else:
        overall = "healthy"

    return DetailedHealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        redis="healthy" if redis_healthy else "unhealthy",
        expiry_sweep=(
            f"every {settings.sweep_interval_seconds}s"
            if settings.sweep_interval_seconds > 0
            else "disabled"
        ),
        clinic_date=clinic_today().isoformat(),
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    return {"message": "pong"}
