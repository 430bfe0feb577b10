"""Common schemas: probes and the error body."""

from typing import Optional

from pydantic import BaseModel, Field


class DependencyHealth(BaseModel):
    """Result of probing one dependency."""

    status: str = Field(..., description="ok, error or unavailable")
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok, or degraded when the database is down")
    database: DependencyHealth
    version: str


class ReadinessResponse(BaseModel):
    """Readiness probe body; the endpoint answers 503 while not ready."""

    ready: bool
    checks: dict[str, DependencyHealth]
    version: str
    git_sha: Optional[str] = None
    config_profile: str


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    detail: str
    reason: Optional[str] = Field(
        None, description="Machine-readable reason, e.g. unknown_employee"
    )
    field: Optional[str] = Field(
        None, description="Offending input field, e.g. crew[0].employee_id"
    )
    retryable: bool = Field(
        default=False, description="True when the same request may succeed later"
    )
