"""Prometheus metrics and the /metrics scrape endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

router = APIRouter()

_PREFIX = "rentalops"

# HTTP
REQUEST_COUNT = Counter(
    f"{_PREFIX}_requests_total",
    "HTTP requests by method, path and status",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    f"{_PREFIX}_request_latency_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Booking writes; outcome is success, invalid, not_found, conflict or error
JOB_WRITES = Counter(
    f"{_PREFIX}_job_writes_total",
    "Job write use cases by operation and outcome",
    ["operation", "outcome"],
)
PRICING_CLAMPED = Counter(
    f"{_PREFIX}_pricing_clamped_total",
    "Job totals clamped to zero because the discount exceeded the gross",
)

# Dependencies
SERVICE_UP = Gauge(
    f"{_PREFIX}_service_up",
    "Dependency availability (1 up, 0 down)",
    ["component"],
)
DB_POOL_SIZE = Gauge(f"{_PREFIX}_db_pool_size", "Open database connections")
DB_POOL_AVAILABLE = Gauge(
    f"{_PREFIX}_db_pool_available", "Idle database connections in the pool"
)


def record_request(method: str, endpoint: str, status_code: int, duration: float):
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=status_code).inc()
    REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)


def record_job_write(operation: str, outcome: str):
    JOB_WRITES.labels(operation=operation, outcome=outcome).inc()


def record_pricing_clamped():
    PRICING_CLAMPED.inc()


def set_service_health(component: str, is_up: bool):
    SERVICE_UP.labels(component=component).set(int(is_up))


def set_db_pool_metrics(pool_size: int, available: int):
    DB_POOL_SIZE.set(pool_size)
    DB_POOL_AVAILABLE.set(available)


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus text exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
