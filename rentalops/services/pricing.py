"""Job pricing: per-item subtotals, aggregate discount and job total.

Pure functions, no I/O. The job's stored ``value`` is always the ``total``
computed here from the line items and discount inputs of the same write.

Rules:
    subtotal = quantity * unit_price - line_discount
    gross    = sum(subtotal)
    discount = discount_amount if supplied (> 0)
               else max(gross, 0) * discount_percentage / 100
    total    = max(gross - discount, 0)

An explicit amount overrides a percentage so the two never stack. A zero
amount counts as "not supplied". Negative totals are clamped to zero and
reported as a warning, not an error.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from rentalops.bookings.models import LineItem

CENT = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

WARNING_TOTAL_CLAMPED = "total_clamped_to_zero"
WARNING_LINE_NEGATIVE = "line_subtotal_negative"

Number = Union[Decimal, int, float, str]


def to_money(value: Optional[Number]) -> Decimal:
    """Coerce to a Decimal rounded to cents (None -> 0)."""
    if value is None:
        return ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        # str() keeps floats like 0.1 from dragging binary noise along
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingResult:
    """Output of the pricing calculation."""

    line_subtotals: tuple[Decimal, ...]
    gross: Decimal
    discount_amount: Decimal
    discount_percentage: Optional[Decimal]
    total: Decimal
    warnings: tuple[str, ...] = ()

    @property
    def clamped(self) -> bool:
        return WARNING_TOTAL_CLAMPED in self.warnings


def line_subtotal(item: LineItem) -> Decimal:
    """quantity x unit price minus the line discount."""
    return to_money(
        Decimal(item.quantity) * to_money(item.unit_price) - to_money(item.line_discount)
    )


def resolve_discount(
    gross: Decimal,
    discount_amount: Optional[Number] = None,
    discount_percentage: Optional[Number] = None,
) -> Decimal:
    """Absolute discount to apply to ``gross``. Never negative."""
    if discount_amount is not None and to_money(discount_amount) > ZERO:
        return to_money(discount_amount)
    if discount_percentage is not None:
        return to_money(max(gross, ZERO) * Decimal(str(discount_percentage)) / HUNDRED)
    return to_money(ZERO)


def calculate_pricing(
    line_items: Iterable[LineItem],
    discount_amount: Optional[Number] = None,
    discount_percentage: Optional[Number] = None,
) -> PricingResult:
    """
    Compute subtotals, gross, applied discount and total for a job.

    Args:
        line_items: The job's complete line item set
        discount_amount: Absolute job-level discount (takes precedence)
        discount_percentage: Job-level discount as a percentage of gross

    Returns:
        PricingResult; ``discount_percentage`` is the effective percentage of
        gross actually discounted, capped at 100 (None when gross is zero and
        no percentage was supplied)
    """
    warnings: list[str] = []
    subtotals = []
    for index, item in enumerate(line_items):
        subtotal = line_subtotal(item)
        if subtotal < ZERO:
            warnings.append(f"{WARNING_LINE_NEGATIVE}:{index}")
        subtotals.append(subtotal)

    gross = to_money(sum(subtotals, ZERO))
    discount = resolve_discount(gross, discount_amount, discount_percentage)

    total = gross - discount
    if total < ZERO:
        warnings.append(WARNING_TOTAL_CLAMPED)
        total = ZERO

    if gross > ZERO:
        effective_pct: Optional[Decimal] = (
            min(discount, gross) * HUNDRED / gross
        ).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
    elif discount_percentage is not None:
        effective_pct = Decimal(str(discount_percentage)).quantize(
            PERCENT_QUANTUM, rounding=ROUND_HALF_UP
        )
    else:
        effective_pct = None

    return PricingResult(
        line_subtotals=tuple(subtotals),
        gross=gross,
        discount_amount=discount,
        discount_percentage=effective_pct,
        total=to_money(total),
        warnings=tuple(warnings),
    )
