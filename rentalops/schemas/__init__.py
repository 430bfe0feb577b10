"""Pydantic schemas for request/response validation."""

from rentalops.schemas.common import (
    DependencyHealth,
    ErrorResponse,
    HealthResponse,
    ReadinessResponse,
)
from rentalops.schemas.dashboards import (
    AnnualRevenueResponse,
    MonthlyRevenueResponse,
    WeeklyTrendResponse,
)
from rentalops.schemas.jobs import (
    CrewMemberRequest,
    CrewMemberResponse,
    JobCommandRequest,
    JobListResponse,
    JobResponse,
    JobStateResponse,
    JobWriteResponse,
    LineItemRequest,
    LineItemResponse,
    PaymentChangeRequest,
    StatusChangeRequest,
)

__all__ = [
    "AnnualRevenueResponse",
    "CrewMemberRequest",
    "CrewMemberResponse",
    "DependencyHealth",
    "ErrorResponse",
    "HealthResponse",
    "JobCommandRequest",
    "JobListResponse",
    "JobResponse",
    "JobStateResponse",
    "JobWriteResponse",
    "LineItemRequest",
    "LineItemResponse",
    "MonthlyRevenueResponse",
    "PaymentChangeRequest",
    "ReadinessResponse",
    "StatusChangeRequest",
    "WeeklyTrendResponse",
]
