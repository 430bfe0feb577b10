"""Tests for booking models and state machines."""

from datetime import date
from decimal import Decimal

import pytest

from rentalops.bookings.models import JOB_COLUMNS, CrewAssignment, Job, LineItem
from rentalops.bookings.types import (
    ACTIVE_JOB_STATUSES,
    JobStatus,
    PaymentStatus,
)


class TestJobStatus:
    @pytest.mark.parametrize(
        "current,target",
        [
            (JobStatus.SCHEDULED, JobStatus.CONFIRMED),
            (JobStatus.CONFIRMED, JobStatus.IN_PROGRESS),
            (JobStatus.IN_PROGRESS, JobStatus.FINISHED),
            (JobStatus.SCHEDULED, JobStatus.CANCELLED),
            (JobStatus.CONFIRMED, JobStatus.CANCELLED),
            (JobStatus.IN_PROGRESS, JobStatus.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert current.can_transition_to(target)

    @pytest.mark.parametrize("terminal", [JobStatus.FINISHED, JobStatus.CANCELLED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal.is_terminal
        assert not any(terminal.can_transition_to(s) for s in JobStatus)

    def test_no_skipping(self):
        assert not JobStatus.SCHEDULED.can_transition_to(JobStatus.IN_PROGRESS)

    def test_active_statuses(self):
        assert ACTIVE_JOB_STATUSES == (
            JobStatus.SCHEDULED,
            JobStatus.CONFIRMED,
            JobStatus.IN_PROGRESS,
        )


class TestJob:
    def test_defaults_are_initial_states(self):
        job = Job()
        assert job.status == JobStatus.SCHEDULED
        assert job.payment_status == PaymentStatus.PENDING
        assert job.value == Decimal("0")

    def test_column_values_follow_column_order(self):
        job = Job(description="Stage", city="Recife", notes="bring cables")
        values = job.column_values()

        assert len(values) == len(JOB_COLUMNS)
        assert values[JOB_COLUMNS.index("description")] == "Stage"
        assert values[JOB_COLUMNS.index("city")] == "Recife"
        assert values[-1] == "bring cables"

    @pytest.mark.parametrize(
        "due,payment,status,expected",
        [
            (date(2025, 1, 9), PaymentStatus.PENDING, JobStatus.FINISHED, True),
            (date(2025, 1, 10), PaymentStatus.PENDING, JobStatus.FINISHED, False),
            (date(2025, 1, 9), PaymentStatus.PAID, JobStatus.FINISHED, False),
            (date(2025, 1, 9), PaymentStatus.PENDING, JobStatus.CANCELLED, False),
            (None, PaymentStatus.PENDING, JobStatus.SCHEDULED, False),
        ],
    )
    def test_is_overdue(self, due, payment, status, expected):
        job = Job(due_date=due, payment_status=payment, status=status)
        assert job.is_overdue(date(2025, 1, 10)) is expected

    def test_revenue_recognized_only_when_finished_and_paid(self):
        assert Job(status=JobStatus.FINISHED, payment_status=PaymentStatus.PAID).is_revenue_recognized
        assert not Job(status=JobStatus.FINISHED).is_revenue_recognized
        assert not Job(payment_status=PaymentStatus.PAID).is_revenue_recognized

    def test_from_row(self):
        row = {
            "id": 5,
            "order_number": "PED-1004",
            "status": "in_progress",
            "payment_status": "paid",
            "value": "99.90",
            "discount_amount": None,
            "discount_percentage": "10.5",
            "version": 3,
            "client_name": "ACME",
        }

        job = Job.from_row(row, line_items=[LineItem("x", 1, Decimal("1"))])

        assert job.id == 5
        assert job.status == JobStatus.IN_PROGRESS
        assert job.payment_status == PaymentStatus.PAID
        assert job.value == Decimal("99.90")
        assert job.discount_amount == Decimal("0")
        assert job.discount_percentage == Decimal("10.5")
        assert job.version == 3
        assert len(job.line_items) == 1
        assert job.crew == []


class TestChildren:
    def test_line_item_equality_ignores_storage_ids(self):
        stored = LineItem.from_row(
            {
                "id": 9,
                "job_id": 1,
                "description": "Speaker",
                "quantity": 2,
                "unit_price": Decimal("100.00"),
                "line_discount": None,
                "equipment_id": None,
            }
        )
        assert stored == LineItem("Speaker", 2, Decimal("100"))

    def test_crew_equality_ignores_display_fields(self):
        stored = CrewAssignment.from_row(
            {"id": 1, "job_id": 2, "employee_id": 7, "role": "Driver", "employee_name": "Ana"}
        )
        assert stored == CrewAssignment(employee_id=7, role="Driver")
