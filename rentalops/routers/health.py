"""Health and readiness endpoints."""

import time

import structlog
from fastapi import APIRouter, Depends, Response, status

from rentalops import __version__
from rentalops.config import Settings, get_settings
from rentalops.core.lifespan import get_db_pool
from rentalops.routers.metrics import set_db_pool_metrics, set_service_health
from rentalops.schemas import DependencyHealth, HealthResponse, ReadinessResponse

router = APIRouter()
logger = structlog.get_logger(__name__)


async def check_database_health() -> DependencyHealth:
    """Check PostgreSQL connectivity through the shared pool."""
    pool = get_db_pool()
    if pool is None:
        return DependencyHealth(status="unavailable", error="Database pool not initialized")

    start = time.perf_counter()
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        latency = (time.perf_counter() - start) * 1000
        set_db_pool_metrics(pool.get_size(), pool.get_idle_size())
        return DependencyHealth(status="ok", latency_ms=latency)
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check health of the service and its database.

    Always answers 200; ``status`` is "degraded" when the database is down.
    """
    database = await check_database_health()
    overall_status = "ok" if database.status == "ok" else "degraded"
    set_service_health("database", database.status == "ok")

    logger.info(
        "health_check_completed",
        status=overall_status,
        database=database.status,
    )
    return HealthResponse(status=overall_status, database=database, version=__version__)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    settings: Settings = Depends(get_settings),
) -> ReadinessResponse:
    """Readiness probe: 503 until the database answers."""
    database = await check_database_health()
    ready = database.status == "ok"
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        ready=ready,
        checks={"database": database},
        version=__version__,
        git_sha=settings.git_sha,
        config_profile=settings.config_profile,
    )
