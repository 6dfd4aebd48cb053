"""Line-item pricing for full and partial service periods.

Everything here is pure: the same inputs always yield the same line, which
is what makes recomputing a draft invoice idempotent.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from billing_engine.core.exceptions import BillingValidationError
from billing_engine.schemas.invoice import InvoiceLine, LinePeriod
from billing_engine.services.billing_periods import (
    ServicePeriod,
    calendar_period,
    months_spanned,
)


def round_half_up(value: Decimal) -> Decimal:
    """Round to a whole currency subunit, halves away from zero."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def prorate_unit_price(
    rate: Decimal | int | str,
    nominal: ServicePeriod,
    interval: ServicePeriod,
) -> Decimal:
    """Scale a full-period rate to ``interval`` by calendar day count.

    A partial interval is priced against the calendar period that encloses
    it: the calendar month of ``interval.start`` for a monthly rate, the
    three or twelve calendar months from that month for quarterly or annual
    rates. A 9-day stub is therefore 9/31 of the rate in January or March
    and 9/28 in February, whatever the length of the billing recurrence.

    Args:
        rate: The unit price for the whole nominal period, in cents.
        nominal: The full committed period the rate applies to.
        interval: The sub-interval being billed; must lie inside ``nominal``.

    Returns:
        ``rate`` unchanged when the interval is the whole period, otherwise
        ``round(rate * interval.days / enclosing.days)`` in whole cents,
        never more than ``rate``.
    """
    rate = Decimal(str(rate))
    if not nominal.contains(interval):
        raise BillingValidationError(
            f"Interval {interval.start}..{interval.end} is outside the billing period "
            f"{nominal.start}..{nominal.end}"
        )
    if interval == nominal:
        return rate
    enclosing = calendar_period(interval.start, max(months_spanned(nominal), 1))
    return min(rate, round_half_up(rate * Decimal(interval.days) / Decimal(enclosing.days)))


def compute_line_item(
    name: str,
    rate: Decimal | int | str,
    quantity: int,
    nominal: ServicePeriod,
    interval: ServicePeriod,
    price_component_id: UUID | None = None,
) -> InvoiceLine | None:
    """Price ``quantity`` units of ``rate`` over ``interval``.

    A zero quantity produces no line at all. A zero-length interval still
    produces a zero-amount line so the period stays visible on the invoice.
    """
    if quantity < 0:
        raise BillingValidationError(f"Quantity cannot be negative, got {quantity}")
    if quantity == 0:
        return None

    unit_price = prorate_unit_price(rate, nominal, interval)
    return InvoiceLine(
        name=name,
        quantity=quantity,
        unit_price=unit_price,
        total=unit_price * quantity,
        period=LinePeriod(from_=interval.start, to=interval.end),
        price_component_id=price_component_id,
    )


def lines_total(lines: Iterable[InvoiceLine]) -> Decimal:
    return sum((line.total for line in lines), Decimal(0))
