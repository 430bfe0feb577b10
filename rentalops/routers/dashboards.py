"""Read-only dashboard endpoints: recognized revenue and weekly job trend."""

from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from rentalops.core.lifespan import get_gateway
from rentalops.db.gateway import StorageGateway
from rentalops.schemas import (
    AnnualRevenueResponse,
    MonthlyRevenueResponse,
    WeeklyTrendResponse,
)
from rentalops.services.dashboard import DashboardService

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def get_dashboard_service(
    gateway: StorageGateway = Depends(get_gateway),
) -> DashboardService:
    return DashboardService(gateway)


@router.get("/revenue/monthly", response_model=MonthlyRevenueResponse)
async def get_monthly_revenue(
    reference_date: Optional[date] = Query(
        None, description="Any day of the month to report (default: today)"
    ),
    service: DashboardService = Depends(get_dashboard_service),
) -> MonthlyRevenueResponse:
    """Revenue of finished and paid jobs scheduled in the reference month."""
    reference = reference_date or date.today()
    total = await service.monthly_recognized_revenue(reference)
    return MonthlyRevenueResponse(
        year=reference.year, month=reference.month, total=total
    )


@router.get("/revenue/annual", response_model=AnnualRevenueResponse)
async def get_annual_revenue(
    reference_date: Optional[date] = Query(
        None, description="Any day of the year to report (default: today)"
    ),
    service: DashboardService = Depends(get_dashboard_service),
) -> AnnualRevenueResponse:
    """Recognized revenue per month of the reference year."""
    reference = reference_date or date.today()
    months = await service.annual_recognized_revenue(reference)
    return AnnualRevenueResponse(year=reference.year, months=months, total=sum(months))


@router.get("/jobs/weekly", response_model=WeeklyTrendResponse)
async def get_weekly_trend(
    reference_date: Optional[date] = Query(
        None, description="Any day of the week to report (default: today)"
    ),
    service: DashboardService = Depends(get_dashboard_service),
) -> WeeklyTrendResponse:
    """Jobs per day of the week (Monday first) and change against the week before."""
    trend = await service.weekly_job_trend(reference_date or date.today())
    _log.debug("weekly_trend_served", week_start=trend.week_start.isoformat())
    return WeeklyTrendResponse(
        week_start=trend.week_start,
        total=trend.total,
        per_day=trend.per_day,
        previous_total=trend.previous_total,
        variation_pct=trend.variation_pct,
    )
