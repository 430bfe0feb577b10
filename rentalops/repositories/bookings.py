"""Repository for the job aggregate (jobs, line items, crew, crew schedule).

Children are never diffed. Every write replaces the complete child sets:
delete all existing rows for the job, then insert the new sets. The job row
and its children are always written inside one transaction scope, so no
reader can observe a job with a partial child set.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import structlog

from rentalops.bookings.models import (
    JOB_COLUMNS,
    CrewAssignment,
    Job,
    LineItem,
    ScheduleEntry,
)
from rentalops.bookings.types import (
    ACTIVE_JOB_STATUSES,
    INITIAL_JOB_STATUS,
    INITIAL_PAYMENT_STATUS,
    JobStatus,
    PaymentStatus,
)
from rentalops.db.gateway import StorageGateway
from rentalops.errors import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)

ORDER_COUNTER_KEY = "order_number_current"

_COLUMN_LIST = ", ".join(JOB_COLUMNS)
_INSERT_PLACEHOLDERS = ", ".join(f"${i + 5}" for i in range(len(JOB_COLUMNS)))
_UPDATE_ASSIGNMENTS = ",\n        ".join(
    f"{column} = ${i + 2}" for i, column in enumerate(JOB_COLUMNS)
)
_ACTOR_PARAM = f"${len(JOB_COLUMNS) + 2}"

# $1..$4 are order_number, status, payment_status, actor
_INSERT_JOB = f"""
    INSERT INTO jobs (
        order_number, status, payment_status, created_by, updated_by,
        {_COLUMN_LIST}
    )
    VALUES ($1, $2, $3, $4, $4, {_INSERT_PLACEHOLDERS})
    RETURNING id
"""

# $1 is the job id, columns follow, actor is last
_UPDATE_JOB = f"""
    UPDATE jobs
    SET {_UPDATE_ASSIGNMENTS},
        version = version + 1,
        updated_by = {_ACTOR_PARAM},
        updated_at = NOW()
    WHERE id = $1
    RETURNING version
"""

_SELECT_JOB = """
    SELECT j.*,
           c.name AS client_name,
           c.document AS client_document,
           e.name AS operator_name
    FROM jobs j
    LEFT JOIN clients c ON j.client_id = c.id
    LEFT JOIN employees e ON j.operator_id = e.id
"""

_INSERT_LINE_ITEM = """
    INSERT INTO job_line_items (
        job_id, position, description, quantity, unit_price,
        line_discount, equipment_id
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7)
"""

_INSERT_CREW = """
    INSERT INTO job_crew (job_id, position, employee_id, role)
    VALUES ($1, $2, $3, $4)
"""

_INSERT_SCHEDULE = """
    INSERT INTO crew_schedule (
        job_id, employee_id, start_date, end_date, kind, note
    )
    VALUES ($1, $2, $3, $4, $5, $6)
"""


@dataclass
class OrderNumbering:
    """Order number format: "{prefix}-{n}", n advancing by increment."""

    prefix: str = "PED"
    start: int = 1000
    increment: int = 1

    def format(self, number: int) -> str:
        return f"{self.prefix}-{number}"


class BookingRepository:
    """Durable storage of job aggregates with full-replace child semantics."""

    def __init__(
        self,
        gateway: StorageGateway,
        numbering: Optional[OrderNumbering] = None,
    ):
        self.gateway = gateway
        self.numbering = numbering or OrderNumbering()

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_job(
        self,
        job: Job,
        line_items: Sequence[LineItem],
        crew: Sequence[CrewAssignment],
        schedule: Sequence[ScheduleEntry] = (),
        created_by: Optional[str] = None,
    ) -> int:
        """
        Insert the job row, then all of its children, in one atomic scope.

        The job always starts in the initial status and payment states,
        whatever the supplied ``job`` carries. The supplied ``job`` is
        stamped with its new id and order number.

        Returns:
            The new job ID
        """
        async with self.gateway.transaction() as tx:
            order_number = await self._next_order_number(tx)
            job_id = await tx.fetchval(
                _INSERT_JOB,
                order_number,
                INITIAL_JOB_STATUS.value,
                INITIAL_PAYMENT_STATUS.value,
                created_by,
                *job.column_values(),
            )
            await self._insert_children(tx, job_id, job, line_items, crew, schedule)

        job.id = job_id
        job.order_number = order_number

        logger.info(
            "job_created",
            job_id=job_id,
            order_number=order_number,
            line_items=len(line_items),
            crew=len(crew),
            value=str(job.value),
            created_by=created_by,
        )
        return job_id

    async def update_job(
        self,
        job_id: int,
        job: Job,
        line_items: Sequence[LineItem],
        crew: Sequence[CrewAssignment],
        schedule: Sequence[ScheduleEntry] = (),
        expected_version: Optional[int] = None,
        updated_by: Optional[str] = None,
    ) -> int:
        """
        Replace the job row and its complete child sets.

        Transactional:
        1. Lock the job row (NotFoundError if absent, ConflictError on
           version mismatch when expected_version is given)
        2. Update the job columns and bump the version
        3. Delete every line item, crew assignment and schedule entry
        4. Insert the new complete sets

        Status and payment status are not touched.

        Returns:
            The job's new version
        """
        async with self.gateway.transaction() as tx:
            current = await self._lock_job(tx, job_id)
            if expected_version is not None and current["version"] != expected_version:
                raise ConflictError(job_id, expected_version, current["version"])

            version = await tx.fetchval(
                _UPDATE_JOB, job_id, *job.column_values(), updated_by
            )
            removed = await self._delete_children(tx, job_id)
            await self._insert_children(tx, job_id, job, line_items, crew, schedule)

        logger.info(
            "job_updated",
            job_id=job_id,
            version=version,
            removed_line_items=removed["line_items"],
            removed_crew=removed["crew"],
            line_items=len(line_items),
            crew=len(crew),
            value=str(job.value),
            updated_by=updated_by,
        )
        return version

    async def delete_job(self, job_id: int) -> bool:
        """
        Delete a job and all of its children in one atomic scope.

        Children are deleted explicitly so the result does not depend on the
        foreign keys being declared with ON DELETE CASCADE.

        Returns:
            True if the job existed and was deleted
        """
        async with self.gateway.transaction() as tx:
            removed = await self._delete_children(tx, job_id)
            deleted = await tx.execute("DELETE FROM jobs WHERE id = $1", job_id)

        if deleted:
            logger.info(
                "job_deleted",
                job_id=job_id,
                removed_line_items=removed["line_items"],
                removed_crew=removed["crew"],
            )
        return deleted > 0

    async def lock_job_state(self, job_id: int) -> dict[str, Any]:
        """
        Lock a job row for a state change and return its current state.

        Must be called on a gateway bound to an open transaction.

        Raises:
            NotFoundError: If the job doesn't exist
        """
        return await self._lock_job(self.gateway, job_id)

    async def update_status(
        self,
        job_id: int,
        status: JobStatus,
        updated_by: Optional[str] = None,
    ) -> int:
        """Set the job status. Returns the new version."""
        version = await self.gateway.fetchval(
            """
            UPDATE jobs
            SET status = $2, version = version + 1,
                updated_by = $3, updated_at = NOW()
            WHERE id = $1
            RETURNING version
            """,
            job_id,
            status.value,
            updated_by,
        )
        if version is None:
            raise NotFoundError("Job", job_id)
        return version

    async def update_payment_status(
        self,
        job_id: int,
        payment_status: PaymentStatus,
        updated_by: Optional[str] = None,
    ) -> int:
        """Set the job payment status. Returns the new version."""
        version = await self.gateway.fetchval(
            """
            UPDATE jobs
            SET payment_status = $2, version = version + 1,
                updated_by = $3, updated_at = NOW()
            WHERE id = $1
            RETURNING version
            """,
            job_id,
            payment_status.value,
            updated_by,
        )
        if version is None:
            raise NotFoundError("Job", job_id)
        return version

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_job(self, job_id: int) -> Optional[Job]:
        """
        Get a job with its line items and crew.

        Joins client and operator display fields.

        Returns:
            Job or None if not found
        """
        row = await self.gateway.fetchrow(f"{_SELECT_JOB} WHERE j.id = $1", job_id)
        if not row:
            return None

        line_items = await self.get_line_items(job_id)
        crew = await self.get_crew(job_id)
        return Job.from_row(row, line_items=line_items, crew=crew)

    async def list_jobs(self) -> list[Job]:
        """
        List all jobs, most recent id first, each with its line items.

        Crew is not loaded here; use get_crew() on demand.
        """
        rows = await self.gateway.fetch(f"{_SELECT_JOB} ORDER BY j.id DESC")
        return await self._with_line_items(rows)

    async def list_active_jobs(self) -> list[Job]:
        """List scheduled, confirmed and in-progress jobs by start date."""
        rows = await self.gateway.fetch(
            f"""
            {_SELECT_JOB}
            WHERE j.status = ANY($1::text[])
            ORDER BY j.start_date ASC NULLS LAST, j.id ASC
            """,
            [s.value for s in ACTIVE_JOB_STATUSES],
        )
        return await self._with_line_items(rows)

    async def get_line_items(self, job_id: int) -> list[LineItem]:
        """Get a job's line items in entry order."""
        rows = await self.gateway.fetch(
            """
            SELECT * FROM job_line_items
            WHERE job_id = $1
            ORDER BY position, id
            """,
            job_id,
        )
        return [LineItem.from_row(r) for r in rows]

    async def get_crew(self, job_id: int) -> list[CrewAssignment]:
        """Get a job's crew with employee display fields."""
        rows = await self.gateway.fetch(
            """
            SELECT jc.*,
                   e.name AS employee_name,
                   e.position AS employee_position
            FROM job_crew jc
            LEFT JOIN employees e ON jc.employee_id = e.id
            WHERE jc.job_id = $1
            ORDER BY jc.position, jc.id
            """,
            job_id,
        )
        return [CrewAssignment.from_row(r) for r in rows]

    async def exists(self, job_id: int) -> bool:
        return bool(
            await self.gateway.fetchval("SELECT 1 FROM jobs WHERE id = $1", job_id)
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _with_line_items(self, rows: list[dict]) -> list[Job]:
        if not rows:
            return []

        job_ids = [r["id"] for r in rows]
        item_rows = await self.gateway.fetch(
            """
            SELECT * FROM job_line_items
            WHERE job_id = ANY($1::bigint[])
            ORDER BY job_id, position, id
            """,
            job_ids,
        )
        items_by_job: dict[int, list[LineItem]] = defaultdict(list)
        for item_row in item_rows:
            items_by_job[item_row["job_id"]].append(LineItem.from_row(item_row))

        return [Job.from_row(r, line_items=items_by_job.get(r["id"], [])) for r in rows]

    async def _lock_job(self, tx: StorageGateway, job_id: int) -> dict[str, Any]:
        row = await tx.fetchrow(
            """
            SELECT id, status, payment_status, version
            FROM jobs
            WHERE id = $1
            FOR UPDATE
            """,
            job_id,
        )
        if not row:
            raise NotFoundError("Job", job_id)
        return row

    async def _next_order_number(self, tx: StorageGateway) -> str:
        """Take the next order number and advance the counter (same scope)."""
        # Seed first so concurrent creators serialize on the row lock below
        await tx.execute(
            """
            INSERT INTO system_settings (key, value)
            VALUES ($1, $2)
            ON CONFLICT (key) DO NOTHING
            """,
            ORDER_COUNTER_KEY,
            str(self.numbering.start),
        )
        raw = await tx.fetchval(
            "SELECT value FROM system_settings WHERE key = $1 FOR UPDATE",
            ORDER_COUNTER_KEY,
        )
        try:
            current = int(raw)
        except (TypeError, ValueError):
            current = self.numbering.start

        await tx.execute(
            "UPDATE system_settings SET value = $2 WHERE key = $1",
            ORDER_COUNTER_KEY,
            str(current + self.numbering.increment),
        )
        return self.numbering.format(current)

    async def _delete_children(self, tx: StorageGateway, job_id: int) -> dict[str, int]:
        line_items = await tx.execute(
            "DELETE FROM job_line_items WHERE job_id = $1", job_id
        )
        crew = await tx.execute("DELETE FROM job_crew WHERE job_id = $1", job_id)
        schedule = await tx.execute(
            "DELETE FROM crew_schedule WHERE job_id = $1", job_id
        )
        return {"line_items": line_items, "crew": crew, "schedule": schedule}

    async def _insert_children(
        self,
        tx: StorageGateway,
        job_id: int,
        job: Job,
        line_items: Iterable[LineItem],
        crew: Iterable[CrewAssignment],
        schedule: Iterable[ScheduleEntry],
    ) -> None:
        default_note = f"Job #{job_id} - {job.description or 'Order'}"
        await tx.executemany(
            _INSERT_LINE_ITEM,
            [
                (
                    job_id,
                    position,
                    item.description,
                    item.quantity,
                    item.unit_price,
                    item.line_discount,
                    item.equipment_id,
                )
                for position, item in enumerate(line_items)
            ],
        )
        await tx.executemany(
            _INSERT_CREW,
            [
                (job_id, position, member.employee_id, member.role)
                for position, member in enumerate(crew)
            ],
        )
        await tx.executemany(
            _INSERT_SCHEDULE,
            [
                (
                    job_id,
                    entry.employee_id,
                    entry.start_date,
                    entry.end_date,
                    entry.kind,
                    entry.note or default_note,
                )
                for entry in schedule
            ],
        )
