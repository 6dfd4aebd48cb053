"""Billing cycle arithmetic: service periods anchored on a day of the month."""

import calendar as cal
from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from billing_engine.core.exceptions import BillingValidationError
from billing_engine.models.plan import BillingPeriod

MONTHS_PER_PERIOD = {
    BillingPeriod.MONTHLY: 1,
    BillingPeriod.QUARTERLY: 3,
    BillingPeriod.ANNUAL: 12,
}


def _shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """Move (year, month) by a signed number of months."""
    index = month - 1 + months
    return year + index // 12, index % 12 + 1


def start_of_day(day: date) -> datetime:
    """Midnight UTC of a calendar date."""
    return datetime.combine(day, time.min, tzinfo=UTC)


def months_spanned(period: "ServicePeriod") -> int:
    """Whole months between the start and end months of ``period``."""
    return (period.end.year - period.start.year) * 12 + period.end.month - period.start.month


def calendar_period(day: date, months: int) -> "ServicePeriod":
    """The ``months`` calendar months starting with the month of ``day``.

    For a monthly recurrence this is simply the calendar month of ``day``.
    """
    year, month = _shift_month(day.year, day.month, months)
    return ServicePeriod(day.replace(day=1), date(year, month, 1))


@dataclass(frozen=True)
class ServicePeriod:
    """Half-open date interval [start, end)."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise BillingValidationError(
                f"Invalid service period: {self.start} is after {self.end}"
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def contains(self, other: "ServicePeriod") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class BillingCycle:
    """Recurring billing periods whose boundaries fall on ``billing_day``.

    A billing day past the end of a short month is clamped to that month's
    last day, so day 31 yields Jan 31, Feb 28, Mar 31, ...
    """

    billing_period: BillingPeriod
    billing_day: int

    def __post_init__(self) -> None:
        try:
            period = BillingPeriod(self.billing_period)
        except ValueError:
            raise BillingValidationError(
                f"Unknown billing period: {self.billing_period}"
            ) from None
        object.__setattr__(self, "billing_period", period)
        if not 1 <= int(self.billing_day) <= 31:
            raise BillingValidationError(
                f"Billing day must be between 1 and 31, got {self.billing_day}"
            )

    @property
    def months(self) -> int:
        return MONTHS_PER_PERIOD[self.billing_period]

    def boundary(self, year: int, month: int) -> date:
        """The billing-day date in the given month."""
        max_day = cal.monthrange(year, month)[1]
        return date(year, month, min(self.billing_day, max_day))

    def is_boundary(self, day: date) -> bool:
        return day == self.boundary(day.year, day.month)

    def shift(self, day: date, months: int) -> date:
        """The boundary ``months`` months away from the month of ``day``."""
        year, month = _shift_month(day.year, day.month, months)
        return self.boundary(year, month)

    def next_boundary_after(self, day: date) -> date:
        candidate = self.boundary(day.year, day.month)
        if candidate > day:
            return candidate
        return self.shift(day, 1)

    def first_period(self, start: date) -> ServicePeriod:
        """The first period of a subscription starting on ``start``.

        Starting on a boundary gives a full recurrence; any other day gives a
        stub period that ends on the next boundary.
        """
        if self.is_boundary(start):
            return ServicePeriod(start, self.shift(start, self.months))
        return ServicePeriod(start, self.next_boundary_after(start))

    def next_period(self, previous: ServicePeriod) -> ServicePeriod:
        return ServicePeriod(previous.end, self.shift(previous.end, self.months))

    def nominal_period(self, end: date) -> ServicePeriod:
        """The full recurrence that ends on the boundary ``end``."""
        return ServicePeriod(self.shift(end, -self.months), end)

    def period_containing(self, start: date, at: date) -> ServicePeriod:
        """The period of a subscription starting on ``start`` that contains ``at``.

        Dates before the subscription start resolve to its first period.
        """
        period = self.first_period(start)
        while period.end <= at:
            period = self.next_period(period)
        return period
