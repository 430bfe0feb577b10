"""Rental operations service - FastAPI application."""

import logging
import sys

import structlog
from fastapi import FastAPI

from rentalops import __version__
from rentalops.config import get_settings
from rentalops.core.errors import setup_error_handlers
from rentalops.core.lifespan import lifespan
from rentalops.core.middleware import setup_middleware
from rentalops.core.sentry import init_sentry
from rentalops.routers import dashboards, health, jobs, metrics

settings = get_settings()

# JSON logs on stdout; request context comes from structlog.contextvars
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=settings.log_level.upper(),
)
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

init_sentry(settings)

docs = settings.docs_enabled
app = FastAPI(
    title="Rental Operations",
    description=(
        "Job composition, crew allocation and revenue dashboards "
        "for event equipment rental"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if docs else None,
    redoc_url="/redoc" if docs else None,
    openapi_url="/openapi.json" if docs else None,
)
if not docs:
    logger.info("api_docs_disabled")

setup_middleware(app, settings)
setup_error_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(jobs.router)
app.include_router(dashboards.router)
app.include_router(metrics.router)


@app.get("/")
async def root():
    """Service info."""
    return {
        "service": "rentalops",
        "version": __version__,
        "health": "/health",
        "docs": "/docs" if docs else None,
    }
