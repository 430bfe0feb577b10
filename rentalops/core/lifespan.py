"""Application lifespan management - startup and shutdown logic."""

import traceback
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import asyncpg
import structlog
from fastapi import FastAPI, HTTPException, status

from rentalops import __version__
from rentalops.config import Settings, get_settings
from rentalops.db.gateway import StorageGateway
from rentalops.db.schema import apply_schema

logger = structlog.get_logger(__name__)

# Global pool - accessed through the dependencies below
_db_pool: Optional[asyncpg.Pool] = None


def get_db_pool() -> Optional[asyncpg.Pool]:
    """Get the database connection pool."""
    return _db_pool


def set_db_pool(pool: Optional[asyncpg.Pool]) -> None:
    """Set the database connection pool (used by tests and startup)."""
    global _db_pool
    _db_pool = pool


def get_gateway() -> StorageGateway:
    """FastAPI dependency: storage gateway over the shared pool.

    Raises:
        HTTPException: 503 when the database is not available
    """
    if _db_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available",
            headers={"Retry-After": "5"},
        )
    return StorageGateway(_db_pool)


async def _init_database(settings: Settings) -> Optional[asyncpg.Pool]:
    """Initialize the asyncpg connection pool."""
    if not settings.database_url:
        logger.warning("database_not_configured", hint="set DATABASE_URL")
        return None

    try:
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            ssl="require" if settings.db_ssl else None,
            timeout=10,  # connect timeout; startup must not hang
            command_timeout=settings.db_command_timeout,
        )
    except Exception as e:
        logger.error(
            "database_pool_init_failed",
            error=str(e),
            traceback=traceback.format_exc(),
        )
        return None

    logger.info(
        "database_pool_initialized",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "service_starting",
        version=__version__,
        git_sha=settings.git_sha or "unknown",
        config_profile=settings.config_profile,
        host=settings.service_host,
        port=settings.service_port,
    )

    pool = await _init_database(settings)
    set_db_pool(pool)

    if pool is not None and settings.db_auto_migrate:
        await apply_schema(StorageGateway(pool))

    yield

    logger.info("service_stopping")

    if pool is not None:
        await pool.close()
        set_db_pool(None)
        logger.info("database_pool_closed")
