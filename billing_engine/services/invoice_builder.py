"""Builds invoice line items and draft invoices for subscriptions."""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.models.invoice import Invoice, InvoiceType, InvoicingProvider
from billing_engine.models.plan import FeeType
from billing_engine.models.subscription import Subscription, SubscriptionComponent
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.repositories.slot_transaction_repository import SlotTransactionRepository
from billing_engine.schemas.invoice import InvoiceCreate, InvoiceLine
from billing_engine.services.billing_periods import BillingCycle, ServicePeriod, start_of_day
from billing_engine.services.proration import compute_line_item


class InvoiceBuilder:
    """Turns a subscription's committed components into invoices."""

    def __init__(self, db: Session):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.slot_repo = SlotTransactionRepository(db)

    @staticmethod
    def cycle_for(subscription: Subscription) -> BillingCycle:
        return BillingCycle(
            str(subscription.billing_period),  # type: ignore[arg-type]
            int(subscription.billing_day),
        )

    def billed_interval(self, subscription: Subscription, period: ServicePeriod) -> ServicePeriod:
        """Cut ``period`` short at the subscription's billing end date."""
        end_date = subscription.billing_end_date
        if end_date is not None and end_date < period.end:
            return ServicePeriod(period.start, max(end_date, period.start))
        return period

    def nominal_for(self, subscription: Subscription, interval: ServicePeriod) -> ServicePeriod:
        """The full recurrence the rates of ``interval`` are quoted for."""
        cycle = self.cycle_for(subscription)
        period = cycle.period_containing(
            subscription.billing_start_date,  # type: ignore[arg-type]
            interval.start,
        )
        return cycle.nominal_period(period.end)

    def period_lines(
        self,
        subscription: Subscription,
        nominal: ServicePeriod,
        interval: ServicePeriod,
    ) -> list[InvoiceLine]:
        """Price every component of the subscription over ``interval``.

        Rate components are billed once. Slot components are billed for the
        slots active at the start of the interval, less increases made at that
        very instant, which are billed on their adjustment invoice.
        """
        lines: list[InvoiceLine] = []
        for component in subscription.components:
            if component.fee_type == FeeType.SLOT.value:
                quantity = self.slot_repo.billed_slots_from(
                    subscription.id,  # type: ignore[arg-type]
                    component.price_component_id,  # type: ignore[arg-type]
                    start_of_day(interval.start),
                )
            else:
                quantity = 1
            line = compute_line_item(
                name=str(component.name),
                rate=self._unit_rate(component),
                quantity=quantity,
                nominal=nominal,
                interval=interval,
                price_component_id=component.price_component_id,  # type: ignore[arg-type]
            )
            if line is not None:
                lines.append(line)
        return lines

    @staticmethod
    def _unit_rate(component: SubscriptionComponent) -> Decimal:
        """The snapshot unit price without the storage scale's trailing zeros."""
        rate = Decimal(str(component.unit_price_cents))
        if rate == rate.to_integral_value():
            return rate.quantize(Decimal(1))
        return rate.normalize()

    def _due_date(self, subscription: Subscription, invoice_date: datetime) -> datetime:
        return invoice_date + timedelta(days=int(subscription.net_terms or 0))

    def build_period_invoice(
        self,
        subscription: Subscription,
        period: ServicePeriod,
        commit: bool = True,
    ) -> Invoice:
        """Create the draft invoice for one billing period, billed in advance."""
        interval = self.billed_interval(subscription, period)
        nominal = self.cycle_for(subscription).nominal_period(period.end)
        invoice_date = start_of_day(interval.start)

        data = InvoiceCreate(
            customer_id=subscription.customer_id,  # type: ignore[arg-type]
            subscription_id=subscription.id,  # type: ignore[arg-type]
            invoice_type=InvoiceType.SUBSCRIPTION,
            invoicing_provider=InvoicingProvider(subscription.invoicing_provider),
            currency=str(subscription.currency),
            billing_period_start=interval.start,
            billing_period_end=interval.end,
            invoice_date=invoice_date,
            due_date=self._due_date(subscription, invoice_date),
            line_items=self.period_lines(subscription, nominal, interval),
        )
        return self.invoice_repo.create(
            data,
            tenant_id=subscription.tenant_id,  # type: ignore[arg-type]
            commit=commit,
        )

    def build_adjustment_invoice(
        self,
        subscription: Subscription,
        component: SubscriptionComponent,
        quantity: int,
        at: datetime,
        period: ServicePeriod,
    ) -> Invoice:
        """Create the supplemental draft invoice for slots added mid-period.

        The invoice is only flushed; the caller commits it together with the
        slot transaction.
        """
        interval = self.billed_interval(subscription, ServicePeriod(at.date(), period.end))
        nominal = self.cycle_for(subscription).nominal_period(period.end)
        line = compute_line_item(
            name=str(component.name),
            rate=self._unit_rate(component),
            quantity=quantity,
            nominal=nominal,
            interval=interval,
            price_component_id=UUID(str(component.price_component_id)),
        )

        data = InvoiceCreate(
            customer_id=subscription.customer_id,  # type: ignore[arg-type]
            subscription_id=subscription.id,  # type: ignore[arg-type]
            invoice_type=InvoiceType.ADJUSTMENT,
            invoicing_provider=InvoicingProvider(subscription.invoicing_provider),
            currency=str(subscription.currency),
            billing_period_start=interval.start,
            billing_period_end=interval.end,
            invoice_date=at,
            due_date=self._due_date(subscription, at),
            line_items=[line] if line is not None else [],
        )
        return self.invoice_repo.create(
            data,
            tenant_id=subscription.tenant_id,  # type: ignore[arg-type]
            commit=False,
        )
