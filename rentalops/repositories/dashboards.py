"""Repository for dashboard read queries over persisted jobs."""

from datetime import date
from decimal import Decimal

from rentalops.bookings.types import JobStatus, PaymentStatus
from rentalops.db.gateway import StorageGateway


class DashboardRepository:

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def recognized_revenue_between(self, start: date, end: date) -> Decimal:
        """Sum of finished and paid job values scheduled in [start, end)."""
        query = """
            SELECT COALESCE(SUM(value), 0) AS total
            FROM jobs
            WHERE status = $1
              AND payment_status = $2
              AND start_date >= $3
              AND start_date < $4
        """
        total = await self.gateway.fetchval(
            query,
            JobStatus.FINISHED.value,
            PaymentStatus.PAID.value,
            start,
            end,
        )
        return Decimal(total or 0)

    async def recognized_revenue_by_month(self, year: int) -> dict[int, Decimal]:
        """Finished and paid revenue per month (1-12) of ``year``; empty months absent."""
        query = """
            SELECT
                EXTRACT(MONTH FROM start_date)::int AS month,
                COALESCE(SUM(value), 0) AS total
            FROM jobs
            WHERE status = $1
              AND payment_status = $2
              AND start_date >= make_date($3, 1, 1)
              AND start_date < make_date($3 + 1, 1, 1)
            GROUP BY 1
            ORDER BY 1
        """
        rows = await self.gateway.fetch(
            query, JobStatus.FINISHED.value, PaymentStatus.PAID.value, year
        )
        return {r["month"]: Decimal(r["total"] or 0) for r in rows}

    async def count_jobs_by_day(self, start: date, end: date) -> dict[date, int]:
        """Jobs per scheduled day in [start, end), any status; empty days absent."""
        query = """
            SELECT start_date AS day, COUNT(*) AS total
            FROM jobs
            WHERE start_date >= $1
              AND start_date < $2
            GROUP BY start_date
            ORDER BY start_date
        """
        rows = await self.gateway.fetch(query, start, end)
        return {r["day"]: r["total"] for r in rows}
