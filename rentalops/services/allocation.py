"""Allocation validator: rejects invalid booking commands before any write.

Structural checks (quantities, prices, discounts, dates) run first and need
no I/O. Referential checks then resolve every client, employee and equipment
reference through a lookup collaborator. The first failure is raised as a
ValidationError naming the offending field.

A job with no client is accepted as a draft booking; a client id that does
not resolve is rejected. The same employee may appear more than once in a
crew under different roles.
"""

from decimal import Decimal
from typing import Optional, Protocol

from rentalops.bookings.commands import BookingCommand
from rentalops.bookings.models import CrewAssignment, LineItem
from rentalops.errors import ValidationError

MAX_DISCOUNT_PERCENTAGE = Decimal("100")


class ReferenceLookup(Protocol):
    """Existence checks supplied by the owners of the reference entities."""

    async def client_exists(self, client_id: int) -> bool: ...

    async def employee_exists(self, employee_id: int) -> bool: ...

    async def equipment_exists(self, equipment_id: int) -> bool: ...


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def check_line_items(line_items: list[LineItem]) -> None:
    """Quantity must be a positive integer, prices and discounts non-negative."""
    for index, item in enumerate(line_items):
        prefix = f"line_items[{index}]"
        if not _is_positive_int(item.quantity):
            raise ValidationError(
                "invalid_quantity",
                field=f"{prefix}.quantity",
                detail=f"Quantity must be a positive integer, got {item.quantity!r}",
            )
        if item.unit_price is None or Decimal(item.unit_price) < 0:
            raise ValidationError(
                "invalid_unit_price",
                field=f"{prefix}.unit_price",
                detail=f"Unit price must be non-negative, got {item.unit_price}",
            )
        if item.line_discount is not None and Decimal(item.line_discount) < 0:
            raise ValidationError(
                "invalid_discount",
                field=f"{prefix}.line_discount",
                detail=f"Line discount must be non-negative, got {item.line_discount}",
            )


def check_crew(crew: list[CrewAssignment]) -> None:
    for index, member in enumerate(crew):
        if not _is_positive_int(member.employee_id):
            raise ValidationError(
                "unknown_employee",
                field=f"crew[{index}].employee_id",
                detail=f"Employee reference {member.employee_id!r} is not a valid id",
            )


def check_discounts(
    discount_amount: Optional[Decimal], discount_percentage: Optional[Decimal]
) -> None:
    if discount_amount is not None and Decimal(discount_amount) < 0:
        raise ValidationError(
            "invalid_discount",
            field="discount_amount",
            detail="Discount amount must be non-negative",
        )
    if discount_percentage is not None and not (
        0 <= Decimal(discount_percentage) <= MAX_DISCOUNT_PERCENTAGE
    ):
        raise ValidationError(
            "invalid_discount",
            field="discount_percentage",
            detail="Discount percentage must be between 0 and 100",
        )


def check_schedule(command: BookingCommand) -> None:
    job = command.job
    if job.start_date and job.end_date and job.end_date < job.start_date:
        raise ValidationError(
            "invalid_schedule",
            field="end_date",
            detail="End date must not be before start date",
        )
    if job.payment_term_days is not None and job.payment_term_days < 0:
        raise ValidationError(
            "invalid_schedule",
            field="payment_term_days",
            detail="Payment term must be a non-negative number of days",
        )


def check_structure(command: BookingCommand) -> None:
    """All I/O-free checks, in a fixed order."""
    check_line_items(command.line_items)
    check_crew(command.crew)
    check_discounts(command.discount_amount, command.discount_percentage)
    check_schedule(command)


class AllocationValidator:
    """Validates booking commands against structure and reference data."""

    def __init__(self, lookup: ReferenceLookup):
        self.lookup = lookup

    async def validate(self, command: BookingCommand) -> None:
        """
        Raise ValidationError for the first invalid field.

        Raises:
            ValidationError: reason is one of invalid_quantity,
                invalid_unit_price, invalid_discount, invalid_schedule,
                unknown_client, unknown_employee, unknown_equipment
        """
        check_structure(command)

        job = command.job
        if job.client_id is not None and not await self.lookup.client_exists(
            job.client_id
        ):
            raise ValidationError(
                "unknown_client",
                field="client_id",
                detail=f"Client {job.client_id} does not exist",
            )

        known_employees: dict[int, bool] = {}

        async def employee_known(employee_id: int) -> bool:
            if employee_id not in known_employees:
                known_employees[employee_id] = await self.lookup.employee_exists(
                    employee_id
                )
            return known_employees[employee_id]

        if job.operator_id is not None and not await employee_known(job.operator_id):
            raise ValidationError(
                "unknown_employee",
                field="operator_id",
                detail=f"Employee {job.operator_id} does not exist",
            )

        known_equipment: dict[int, bool] = {}
        for index, item in enumerate(command.line_items):
            if item.equipment_id is None:
                continue
            if item.equipment_id not in known_equipment:
                known_equipment[item.equipment_id] = await self.lookup.equipment_exists(
                    item.equipment_id
                )
            if not known_equipment[item.equipment_id]:
                raise ValidationError(
                    "unknown_equipment",
                    field=f"line_items[{index}].equipment_id",
                    detail=f"Equipment {item.equipment_id} does not exist",
                )

        for index, member in enumerate(command.crew):
            if not await employee_known(member.employee_id):
                raise ValidationError(
                    "unknown_employee",
                    field=f"crew[{index}].employee_id",
                    detail=f"Employee {member.employee_id} does not exist",
                )
