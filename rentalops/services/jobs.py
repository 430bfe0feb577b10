"""Job service: booking use cases over the job aggregate.

Every write runs inside one atomic scope opened on the storage gateway:
validation, pricing and the repository write all see the same connection,
and nothing is committed unless the whole use case succeeds. The repository
opens its own scope for each write; inside a service scope that becomes a
savepoint.

The service never retries. Storage failures surface as PersistenceError with
``retryable`` set by the gateway; retry policy belongs to the caller.
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator, Optional

import structlog

from rentalops.bookings.commands import BookingCommand
from rentalops.bookings.models import CrewAssignment, Job, ScheduleEntry
from rentalops.bookings.types import (
    INITIAL_JOB_STATUS,
    INITIAL_PAYMENT_STATUS,
    JobStatus,
    PaymentStatus,
    ScheduleKind,
)
from rentalops.config import Settings
from rentalops.db.gateway import StorageGateway
from rentalops.errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from rentalops.repositories.bookings import BookingRepository, OrderNumbering
from rentalops.repositories.references import ReferenceRepository
from rentalops.routers.metrics import record_job_write, record_pricing_clamped
from rentalops.services.allocation import AllocationValidator
from rentalops.services.pricing import PricingResult, calculate_pricing

logger = structlog.get_logger(__name__)

DEFAULT_CREW_ROLE = "Technician"
DEFAULT_PAYMENT_TERMS = "Upfront"


@dataclass
class JobWriteResult:
    """Outcome of a create or update."""

    job_id: int
    version: int
    value: Decimal
    order_number: Optional[str] = None
    warnings: tuple[str, ...] = ()


@dataclass
class JobStateResult:
    """Outcome of a status or payment status change."""

    job_id: int
    status: JobStatus
    payment_status: PaymentStatus
    version: int
    changed: bool = True


# =============================================================================
# Derived fields
# =============================================================================


def format_address(
    street: Optional[str],
    number: Optional[str],
    district: Optional[str],
    city: Optional[str],
    state: Optional[str],
) -> Optional[str]:
    """One-line address: "street, number - district, city/state".

    Missing parts are left out. Returns None without a street.
    """
    if not street:
        return None
    address = ", ".join(p for p in (street, number) if p)
    if district:
        address = f"{address} - {district}"
    locality = "/".join(p for p in (city, state) if p)
    if locality:
        address = f"{address}, {locality}"
    return address


def derive_payer_address(job: Job) -> Optional[str]:
    """Payer address from the payer fields, each falling back to the delivery address."""
    derived = format_address(
        job.payer_street or job.street,
        job.payer_number or job.street_number,
        job.payer_district or job.district,
        job.payer_city or job.city,
        job.payer_state or job.state,
    )
    return derived or job.payer_address


def compute_due_date(job: Job) -> Optional[date]:
    """start_date + payment_term_days, else the due date as supplied."""
    if job.payment_term_days is not None and job.start_date is not None:
        return job.start_date + timedelta(days=job.payment_term_days)
    return job.due_date


def build_schedule(job: Job, crew: list[CrewAssignment]) -> list[ScheduleEntry]:
    """One work entry per crew member spanning the job dates.

    Jobs without a start date get no schedule entries.
    """
    if job.start_date is None:
        return []
    end_date = job.end_date or job.start_date
    return [
        ScheduleEntry(
            employee_id=member.employee_id,
            start_date=job.start_date,
            end_date=end_date,
            kind=ScheduleKind.WORK.value,
        )
        for member in crew
    ]


def _outcome(exc: BookingError) -> str:
    if isinstance(exc, ValidationError):
        return "invalid"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, ConflictError):
        return "conflict"
    return "error"


@contextmanager
def _track_write(operation: str) -> Iterator[None]:
    try:
        yield
    except ValidationError as e:
        logger.info(
            "job_validation_failed",
            operation=operation,
            reason=e.reason,
            field=e.field,
        )
        record_job_write(operation, _outcome(e))
        raise
    except BookingError as e:
        record_job_write(operation, _outcome(e))
        raise
    record_job_write(operation, "success")


class JobService:
    """Create, update, read, delete and state changes for jobs."""

    def __init__(
        self,
        gateway: StorageGateway,
        numbering: Optional[OrderNumbering] = None,
        default_payment_terms: str = DEFAULT_PAYMENT_TERMS,
    ):
        self.gateway = gateway
        self.numbering = numbering or OrderNumbering()
        self.default_payment_terms = default_payment_terms

    @classmethod
    def from_settings(cls, gateway: StorageGateway, settings: Settings) -> "JobService":
        return cls(
            gateway,
            numbering=OrderNumbering(
                prefix=settings.order_number_prefix,
                start=settings.order_number_start,
                increment=settings.order_number_increment,
            ),
            default_payment_terms=settings.default_payment_terms_text,
        )

    def _repository(self, gateway: Optional[StorageGateway] = None) -> BookingRepository:
        return BookingRepository(gateway or self.gateway, self.numbering)

    def _prepare(
        self, command: BookingCommand
    ) -> tuple[Job, list[CrewAssignment], PricingResult]:
        """Apply pricing and derived fields to a validated command."""
        pricing = calculate_pricing(
            command.line_items,
            discount_amount=command.discount_amount,
            discount_percentage=command.discount_percentage,
        )
        if pricing.clamped:
            logger.warning(
                "job_total_clamped",
                gross=str(pricing.gross),
                discount=str(pricing.discount_amount),
            )
            record_pricing_clamped()

        crew = [
            CrewAssignment(
                employee_id=member.employee_id,
                role=(member.role or "").strip() or DEFAULT_CREW_ROLE,
            )
            for member in command.crew
        ]

        source = command.job
        job = replace(
            source,
            value=pricing.total,
            discount_amount=pricing.discount_amount,
            discount_percentage=pricing.discount_percentage,
            payment_terms=(source.payment_terms or "").strip()
            or self.default_payment_terms,
            payer_address=derive_payer_address(source),
            due_date=compute_due_date(source),
            line_items=list(command.line_items),
            crew=crew,
        )
        return job, crew, pricing

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_job(
        self, command: BookingCommand, user_id: Optional[str] = None
    ) -> JobWriteResult:
        """
        Validate, price and persist a new job with its children.

        The job starts Scheduled and Pending whatever the command carries.

        Raises:
            ValidationError: Invalid input (nothing written)
            PersistenceError: Storage failure (nothing written)
        """
        with _track_write("create"):
            async with self.gateway.transaction() as tx:
                await AllocationValidator(ReferenceRepository(tx)).validate(command)
                job, crew, pricing = self._prepare(command)
                job = replace(
                    job,
                    status=INITIAL_JOB_STATUS,
                    payment_status=INITIAL_PAYMENT_STATUS,
                )
                job_id = await self._repository(tx).create_job(
                    job,
                    job.line_items,
                    crew,
                    build_schedule(job, crew),
                    created_by=user_id,
                )

        return JobWriteResult(
            job_id=job_id,
            version=1,
            value=pricing.total,
            order_number=job.order_number,
            warnings=pricing.warnings,
        )

    async def update_job(
        self,
        job_id: int,
        command: BookingCommand,
        user_id: Optional[str] = None,
    ) -> JobWriteResult:
        """
        Replace a job's header fields and complete child sets.

        Status and payment status are left as they are. When the command
        carries ``expected_version`` a stale version fails with
        ConflictError and nothing is written.

        Raises:
            NotFoundError: Job doesn't exist
            ConflictError: Version mismatch
            ValidationError: Invalid input
            PersistenceError: Storage failure
        """
        with _track_write("update"):
            async with self.gateway.transaction() as tx:
                repo = self._repository(tx)
                current = await repo.lock_job_state(job_id)
                if (
                    command.expected_version is not None
                    and current["version"] != command.expected_version
                ):
                    raise ConflictError(
                        job_id, command.expected_version, current["version"]
                    )

                await AllocationValidator(ReferenceRepository(tx)).validate(command)
                job, crew, pricing = self._prepare(command)
                job = replace(
                    job,
                    status=JobStatus(current["status"]),
                    payment_status=PaymentStatus(current["payment_status"]),
                )
                version = await repo.update_job(
                    job_id,
                    job,
                    job.line_items,
                    crew,
                    build_schedule(job, crew),
                    expected_version=command.expected_version,
                    updated_by=user_id,
                )

        return JobWriteResult(
            job_id=job_id,
            version=version,
            value=pricing.total,
            warnings=pricing.warnings,
        )

    async def delete_job(self, job_id: int) -> None:
        """
        Delete a job with all of its children.

        Whether a job with recognized revenue may be deleted is decided by
        the caller before invoking this.

        Raises:
            NotFoundError: Job doesn't exist
        """
        with _track_write("delete"):
            deleted = await self._repository().delete_job(job_id)
            if not deleted:
                raise NotFoundError("Job", job_id)

    async def change_status(
        self,
        job_id: int,
        target: JobStatus,
        user_id: Optional[str] = None,
    ) -> JobStateResult:
        """
        Move a job along the status state machine.

        Setting the current status again is a no-op.

        Raises:
            NotFoundError: Job doesn't exist
            ValidationError: reason=invalid_transition
        """
        with _track_write("status"):
            async with self.gateway.transaction() as tx:
                repo = self._repository(tx)
                current = await repo.lock_job_state(job_id)
                current_status = JobStatus(current["status"])
                payment_status = PaymentStatus(current["payment_status"])

                if current_status == target:
                    return JobStateResult(
                        job_id=job_id,
                        status=current_status,
                        payment_status=payment_status,
                        version=current["version"],
                        changed=False,
                    )

                if not current_status.can_transition_to(target):
                    raise ValidationError(
                        "invalid_transition",
                        field="status",
                        detail=(
                            f"Cannot move job from {current_status.value} "
                            f"to {target.value}"
                        ),
                    )
                version = await repo.update_status(job_id, target, updated_by=user_id)

        logger.info(
            "job_status_changed",
            job_id=job_id,
            from_status=current_status.value,
            to_status=target.value,
            version=version,
            user_id=user_id,
        )
        return JobStateResult(
            job_id=job_id,
            status=target,
            payment_status=payment_status,
            version=version,
        )

    async def change_payment_status(
        self,
        job_id: int,
        target: PaymentStatus,
        override: bool = False,
        user_id: Optional[str] = None,
    ) -> JobStateResult:
        """
        Set the payment status.

        Pending -> Paid is the normal transition. Paid -> Pending is an
        administrative reversal and requires ``override=True``.

        Raises:
            NotFoundError: Job doesn't exist
            ValidationError: reason=invalid_transition
        """
        with _track_write("payment"):
            async with self.gateway.transaction() as tx:
                repo = self._repository(tx)
                current = await repo.lock_job_state(job_id)
                status = JobStatus(current["status"])
                current_payment = PaymentStatus(current["payment_status"])

                if current_payment == target:
                    return JobStateResult(
                        job_id=job_id,
                        status=status,
                        payment_status=current_payment,
                        version=current["version"],
                        changed=False,
                    )

                reversal = (
                    current_payment == PaymentStatus.PAID
                    and target == PaymentStatus.PENDING
                )
                if reversal and not override:
                    raise ValidationError(
                        "invalid_transition",
                        field="payment_status",
                        detail="Reverting a paid job to pending requires override",
                    )
                version = await repo.update_payment_status(
                    job_id, target, updated_by=user_id
                )

        if reversal:
            logger.warning(
                "job_payment_reversed", job_id=job_id, version=version, user_id=user_id
            )
        logger.info(
            "job_payment_changed",
            job_id=job_id,
            from_payment_status=current_payment.value,
            to_payment_status=target.value,
            override=override,
            version=version,
            user_id=user_id,
        )
        return JobStateResult(
            job_id=job_id,
            status=status,
            payment_status=target,
            version=version,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_job(self, job_id: int) -> Job:
        """
        Get a job with line items and crew.

        Raises:
            NotFoundError: Job doesn't exist
        """
        job = await self._repository().get_job(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def list_jobs(self) -> list[Job]:
        return await self._repository().list_jobs()

    async def list_active_jobs(self) -> list[Job]:
        return await self._repository().list_active_jobs()

    async def get_job_crew(self, job_id: int) -> list[CrewAssignment]:
        """
        Crew of a job with employee display fields.

        Raises:
            NotFoundError: Job doesn't exist
        """
        repo = self._repository()
        crew = await repo.get_crew(job_id)
        if not crew and not await repo.exists(job_id):
            raise NotFoundError("Job", job_id)
        return crew
