"""Dashboard aggregator: recognized revenue and weekly job trend.

Read-only. Recognized revenue counts only jobs that are both finished and
paid, bucketed by scheduled start date. The weekly trend counts jobs of any
status per day of the Monday-first week containing the reference date.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

import structlog

from rentalops.db.gateway import StorageGateway
from rentalops.repositories.dashboards import DashboardRepository

logger = structlog.get_logger(__name__)

DAYS_PER_WEEK = 7
PCT_QUANTUM = Decimal("0.01")

DateLike = Union[date, datetime]


@dataclass
class WeeklyTrend:
    """Job counts for one Monday-first week."""

    week_start: date
    total: int
    per_day: list[int] = field(default_factory=lambda: [0] * DAYS_PER_WEEK)
    previous_total: int = 0
    variation_pct: Decimal = Decimal("0")


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def month_bounds(reference: DateLike) -> tuple[date, date]:
    """First day of the reference month and first day of the next month."""
    day = _as_date(reference)
    start = day.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def week_start(reference: DateLike) -> date:
    """Monday of the week containing ``reference``."""
    day = _as_date(reference)
    return day - timedelta(days=day.weekday())


def variation_pct(current: int, previous: int) -> Decimal:
    """(current - previous) / previous * 100; 0 when previous is 0."""
    if previous == 0:
        return Decimal("0")
    pct = Decimal(current - previous) * Decimal(100) / Decimal(previous)
    return pct.quantize(PCT_QUANTUM, rounding=ROUND_HALF_UP)


class DashboardService:
    """Aggregate queries for the dashboard views."""

    def __init__(self, gateway: StorageGateway):
        self.repo = DashboardRepository(gateway)

    async def monthly_recognized_revenue(self, now: DateLike) -> Decimal:
        """Recognized revenue for the calendar month of ``now`` (0 when none)."""
        start, end = month_bounds(now)
        return await self.repo.recognized_revenue_between(start, end)

    async def annual_recognized_revenue(self, now: DateLike) -> list[Decimal]:
        """Recognized revenue for each month of the year of ``now``, January first."""
        by_month = await self.repo.recognized_revenue_by_month(_as_date(now).year)
        return [by_month.get(month, Decimal("0")) for month in range(1, 13)]

    async def weekly_job_trend(self, now: DateLike) -> WeeklyTrend:
        """Per-day job counts for the current week and change against the previous one."""
        current_start = week_start(now)
        previous_start = current_start - timedelta(days=DAYS_PER_WEEK)
        current_end = current_start + timedelta(days=DAYS_PER_WEEK)

        counts = await self.repo.count_jobs_by_day(previous_start, current_end)

        per_day = [
            counts.get(current_start + timedelta(days=offset), 0)
            for offset in range(DAYS_PER_WEEK)
        ]
        previous_total = sum(
            counts.get(previous_start + timedelta(days=offset), 0)
            for offset in range(DAYS_PER_WEEK)
        )
        total = sum(per_day)

        trend = WeeklyTrend(
            week_start=current_start,
            total=total,
            per_day=per_day,
            previous_total=previous_total,
            variation_pct=variation_pct(total, previous_total),
        )
        logger.debug(
            "weekly_trend_computed",
            week_start=current_start.isoformat(),
            total=total,
            previous_total=previous_total,
        )
        return trend
