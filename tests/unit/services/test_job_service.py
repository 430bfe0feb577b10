"""Tests for the job service."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from rentalops.bookings.commands import BookingCommand
from rentalops.bookings.models import CrewAssignment, Job, LineItem
from rentalops.bookings.types import JobStatus, PaymentStatus
from rentalops.config import Settings
from rentalops.errors import ConflictError, NotFoundError, ValidationError
from rentalops.services import jobs as jobs_module
from rentalops.services.jobs import (
    JobService,
    build_schedule,
    compute_due_date,
    derive_payer_address,
    format_address,
)
from rentalops.services.pricing import WARNING_TOTAL_CLAMPED


def make_gateway():
    """Gateway mock whose transaction() yields the gateway itself."""
    gateway = MagicMock()
    scope = MagicMock()
    scope.__aenter__ = AsyncMock(return_value=gateway)
    scope.__aexit__ = AsyncMock(return_value=None)
    gateway.transaction = MagicMock(return_value=scope)
    return gateway


def job_state(status="scheduled", payment_status="pending", version=1):
    return {
        "id": 42,
        "status": status,
        "payment_status": payment_status,
        "version": version,
    }


@pytest.fixture
def repo():
    mock = MagicMock()
    mock.create_job = AsyncMock(return_value=42)
    mock.update_job = AsyncMock(return_value=2)
    mock.delete_job = AsyncMock(return_value=True)
    mock.lock_job_state = AsyncMock(return_value=job_state())
    mock.update_status = AsyncMock(return_value=2)
    mock.update_payment_status = AsyncMock(return_value=2)
    mock.get_job = AsyncMock(return_value=None)
    mock.get_crew = AsyncMock(return_value=[])
    mock.exists = AsyncMock(return_value=True)
    mock.list_jobs = AsyncMock(return_value=[])
    mock.list_active_jobs = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def validator():
    mock = MagicMock()
    mock.validate = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def writes(monkeypatch):
    """Captured (operation, outcome) metric records."""
    recorded = []
    monkeypatch.setattr(
        jobs_module, "record_job_write", lambda op, outcome: recorded.append((op, outcome))
    )
    monkeypatch.setattr(jobs_module, "record_pricing_clamped", MagicMock())
    return recorded


@pytest.fixture
def service(monkeypatch, repo, validator, writes):
    monkeypatch.setattr(jobs_module, "BookingRepository", MagicMock(return_value=repo))
    monkeypatch.setattr(jobs_module, "ReferenceRepository", MagicMock())
    monkeypatch.setattr(
        jobs_module, "AllocationValidator", MagicMock(return_value=validator)
    )
    return JobService(make_gateway())


def make_command(**job_overrides) -> BookingCommand:
    job_fields = {
        "description": "Corporate party",
        "client_id": 1,
        "start_date": date(2025, 3, 10),
        "end_date": date(2025, 3, 11),
        "street": "Rua das Flores",
        "street_number": "120",
        "district": "Centro",
        "city": "Recife",
        "state": "PE",
    }
    job_fields.update(job_overrides)
    return BookingCommand(
        job=Job(**job_fields),
        line_items=[
            LineItem(description="Speaker", quantity=2, unit_price=Decimal("100")),
            LineItem(
                description="Mic",
                quantity=1,
                unit_price=Decimal("50"),
                line_discount=Decimal("10"),
            ),
        ],
        crew=[
            CrewAssignment(employee_id=7, role="Lead Operator"),
            CrewAssignment(employee_id=8, role="  "),
        ],
        discount_amount=Decimal("20"),
    )


class TestDerivedFields:
    def test_format_address_full(self):
        assert (
            format_address("Rua A", "10", "Centro", "Recife", "PE")
            == "Rua A, 10 - Centro, Recife/PE"
        )

    def test_format_address_partial(self):
        assert format_address("Rua A", None, None, "Recife", None) == "Rua A, Recife"

    def test_format_address_without_street(self):
        assert format_address(None, "10", "Centro", "Recife", "PE") is None

    def test_payer_address_falls_back_to_delivery_fields(self):
        job = Job(street="Rua A", street_number="10", payer_city="Olinda", city="Recife")
        assert derive_payer_address(job) == "Rua A, 10, Olinda"

    def test_payer_address_keeps_supplied_text_without_street(self):
        job = Job(payer_address="PO Box 12")
        assert derive_payer_address(job) == "PO Box 12"

    def test_due_date_from_term_days(self):
        job = Job(start_date=date(2025, 1, 25), payment_term_days=10)
        assert compute_due_date(job) == date(2025, 2, 4)

    def test_due_date_kept_without_term_days(self):
        job = Job(start_date=date(2025, 1, 25), due_date=date(2025, 3, 1))
        assert compute_due_date(job) == date(2025, 3, 1)

    def test_schedule_end_defaults_to_start(self):
        job = Job(start_date=date(2025, 5, 2))
        entries = build_schedule(job, [CrewAssignment(employee_id=3, role="Driver")])

        assert len(entries) == 1
        assert entries[0].start_date == entries[0].end_date == date(2025, 5, 2)
        assert entries[0].kind == "work"

    def test_no_schedule_without_start_date(self):
        assert build_schedule(Job(), [CrewAssignment(employee_id=3, role="x")]) == []


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_prices_and_persists(self, service, repo, writes):
        async def stamp(job, line_items, crew, schedule, created_by=None):
            job.id = 42
            job.order_number = "PED-1000"
            return 42

        repo.create_job.side_effect = stamp

        result = await service.create_job(make_command(), user_id="user-1")

        assert result.job_id == 42
        assert result.version == 1
        assert result.order_number == "PED-1000"
        assert result.value == Decimal("220.00")
        assert writes == [("create", "success")]

        job, line_items, crew, schedule = repo.create_job.await_args.args
        assert job.value == Decimal("220.00")
        assert job.discount_amount == Decimal("20.00")
        assert len(line_items) == 2
        assert repo.create_job.await_args.kwargs["created_by"] == "user-1"
        assert [m.role for m in crew] == ["Lead Operator", "Technician"]
        assert [(e.employee_id, e.end_date) for e in schedule] == [
            (7, date(2025, 3, 11)),
            (8, date(2025, 3, 11)),
        ]

    @pytest.mark.asyncio
    async def test_initial_states_and_defaults(self, service, repo):
        command = make_command(
            status=JobStatus.FINISHED,
            payment_status=PaymentStatus.PAID,
            payment_term_days=30,
        )

        await service.create_job(command)

        job = repo.create_job.await_args.args[0]
        assert job.status == JobStatus.SCHEDULED
        assert job.payment_status == PaymentStatus.PENDING
        assert job.payment_terms == "Upfront"
        assert job.due_date == date(2025, 4, 9)
        assert job.payer_address == "Rua das Flores, 120 - Centro, Recife/PE"

    @pytest.mark.asyncio
    async def test_command_job_not_mutated(self, service):
        command = make_command()

        await service.create_job(command)

        assert command.job.value == Decimal("0")
        assert command.job.payment_terms is None

    @pytest.mark.asyncio
    async def test_validation_failure_writes_nothing(
        self, service, repo, validator, writes
    ):
        validator.validate.side_effect = ValidationError(
            "unknown_employee", field="crew[0].employee_id"
        )

        with pytest.raises(ValidationError):
            await service.create_job(make_command())

        repo.create_job.assert_not_awaited()
        assert writes == [("create", "invalid")]

    @pytest.mark.asyncio
    async def test_clamped_total_returns_warning(self, service, repo):
        command = make_command()
        command.discount_amount = Decimal("1000")

        result = await service.create_job(command)

        assert result.value == Decimal("0.00")
        assert WARNING_TOTAL_CLAMPED in result.warnings
        jobs_module.record_pricing_clamped.assert_called_once()

    @pytest.mark.asyncio
    async def test_percentage_on_negative_gross_persists_zero_total(
        self, service, repo, writes
    ):
        command = make_command()
        command.line_items = [
            LineItem(
                description="Cable",
                quantity=1,
                unit_price=Decimal("10"),
                line_discount=Decimal("20"),
            )
        ]
        command.discount_amount = None
        command.discount_percentage = Decimal("10")

        result = await service.create_job(command)

        job = repo.create_job.await_args.args[0]
        assert job.value == Decimal("0.00")
        assert job.discount_amount == Decimal("0.00")
        assert result.value == Decimal("0.00")
        assert WARNING_TOTAL_CLAMPED in result.warnings
        assert writes == [("create", "success")]


class TestUpdateJob:
    @pytest.mark.asyncio
    async def test_keeps_current_states(self, service, repo):
        repo.lock_job_state.return_value = job_state(
            status="in_progress", payment_status="paid", version=4
        )
        command = make_command(
            status=JobStatus.CANCELLED, payment_status=PaymentStatus.PENDING
        )

        await service.update_job(42, command)

        job = repo.update_job.await_args.args[1]
        assert job.status == JobStatus.IN_PROGRESS
        assert job.payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_returns_new_version(self, service, repo):
        repo.lock_job_state.return_value = job_state(version=1)
        repo.update_job.return_value = 2

        result = await service.update_job(42, make_command(), user_id="u")

        assert result.version == 2
        assert result.value == Decimal("220.00")
        assert repo.update_job.await_args.args[0] == 42
        assert repo.update_job.await_args.kwargs["updated_by"] == "u"

    @pytest.mark.asyncio
    async def test_stale_version_conflicts_before_validation(
        self, service, repo, validator, writes
    ):
        repo.lock_job_state.return_value = job_state(version=3)
        command = make_command()
        command.expected_version = 2

        with pytest.raises(ConflictError) as exc:
            await service.update_job(42, command)

        assert exc.value.expected_version == 2
        assert exc.value.actual_version == 3
        validator.validate.assert_not_awaited()
        repo.update_job.assert_not_awaited()
        assert writes == [("update", "conflict")]

    @pytest.mark.asyncio
    async def test_missing_job(self, service, repo, writes):
        repo.lock_job_state.side_effect = NotFoundError("Job", 42)

        with pytest.raises(NotFoundError):
            await service.update_job(42, make_command())

        assert writes == [("update", "not_found")]


class TestDeleteJob:
    @pytest.mark.asyncio
    async def test_delete(self, service, repo):
        await service.delete_job(42)
        repo.delete_job.assert_awaited_once_with(42)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service, repo):
        repo.delete_job.return_value = False

        with pytest.raises(NotFoundError):
            await service.delete_job(42)


class TestChangeStatus:
    @pytest.mark.asyncio
    async def test_forward_transition(self, service, repo):
        repo.lock_job_state.return_value = job_state("scheduled", version=4)
        repo.update_status.return_value = 5

        result = await service.change_status(42, JobStatus.CONFIRMED, user_id="u")

        assert result.changed
        assert result.status == JobStatus.CONFIRMED
        assert result.version == 5
        repo.update_status.assert_awaited_once_with(
            42, JobStatus.CONFIRMED, updated_by="u"
        )

    @pytest.mark.parametrize(
        "current,target",
        [
            ("scheduled", JobStatus.FINISHED),
            ("in_progress", JobStatus.SCHEDULED),
            ("finished", JobStatus.CANCELLED),
            ("cancelled", JobStatus.SCHEDULED),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_transitions(self, service, repo, current, target):
        repo.lock_job_state.return_value = job_state(current)

        with pytest.raises(ValidationError) as exc:
            await service.change_status(42, target)

        assert exc.value.reason == "invalid_transition"
        assert exc.value.field == "status"
        repo.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_from_any_active_status(self, service, repo):
        repo.lock_job_state.return_value = job_state("in_progress")

        result = await service.change_status(42, JobStatus.CANCELLED)

        assert result.status == JobStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, service, repo):
        repo.lock_job_state.return_value = job_state("confirmed", version=7)

        result = await service.change_status(42, JobStatus.CONFIRMED)

        assert result.changed is False
        assert result.version == 7
        repo.update_status.assert_not_awaited()


class TestChangePaymentStatus:
    @pytest.mark.asyncio
    async def test_mark_paid(self, service, repo):
        result = await service.change_payment_status(42, PaymentStatus.PAID)

        assert result.payment_status == PaymentStatus.PAID
        repo.update_payment_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reversal_requires_override(self, service, repo):
        repo.lock_job_state.return_value = job_state("finished", "paid")

        with pytest.raises(ValidationError) as exc:
            await service.change_payment_status(42, PaymentStatus.PENDING)

        assert exc.value.reason == "invalid_transition"
        assert exc.value.field == "payment_status"
        repo.update_payment_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reversal_with_override(self, service, repo):
        repo.lock_job_state.return_value = job_state("finished", "paid")

        result = await service.change_payment_status(
            42, PaymentStatus.PENDING, override=True
        )

        assert result.payment_status == PaymentStatus.PENDING
        assert result.changed

    @pytest.mark.asyncio
    async def test_same_payment_status_is_noop(self, service, repo):
        result = await service.change_payment_status(42, PaymentStatus.PENDING)

        assert result.changed is False
        repo.update_payment_status.assert_not_awaited()


class TestReads:
    @pytest.mark.asyncio
    async def test_get_missing_job(self, service):
        with pytest.raises(NotFoundError):
            await service.get_job(1)

    @pytest.mark.asyncio
    async def test_crew_of_missing_job(self, service, repo):
        repo.exists.return_value = False

        with pytest.raises(NotFoundError):
            await service.get_job_crew(1)

    @pytest.mark.asyncio
    async def test_empty_crew_of_existing_job(self, service, repo):
        assert await service.get_job_crew(1) == []


def test_from_settings_builds_numbering():
    settings = Settings(
        order_number_prefix="OS",
        order_number_start=500,
        order_number_increment=10,
        default_payment_terms_text="Net 30",
    )

    service = JobService.from_settings(MagicMock(), settings)

    assert service.numbering.prefix == "OS"
    assert service.numbering.start == 500
    assert service.numbering.increment == 10
    assert service.default_payment_terms == "Net 30"
