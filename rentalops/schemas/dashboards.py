"""Dashboard response schemas."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class MonthlyRevenueResponse(BaseModel):
    """Recognized revenue (finished and paid) for one calendar month."""

    year: int
    month: int = Field(..., ge=1, le=12)
    total: Decimal


class AnnualRevenueResponse(BaseModel):
    """Recognized revenue per month of one year, January first."""

    year: int
    months: list[Decimal] = Field(..., min_length=12, max_length=12)
    total: Decimal


class WeeklyTrendResponse(BaseModel):
    """Jobs per day of the current Monday-first week."""

    week_start: date
    total: int
    per_day: list[int] = Field(..., min_length=7, max_length=7)
    previous_total: int
    variation_pct: Decimal = Field(
        ..., description="Change against the previous week; 0 when it had no jobs"
    )
