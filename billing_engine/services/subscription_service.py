"""Service for subscription creation, cancellation and renewal invoicing."""

import logging
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_engine.core.config import settings
from billing_engine.core.exceptions import BillingValidationError, StorageError
from billing_engine.models.plan import FeeType
from billing_engine.models.subscription import (
    CancellationEffect,
    Subscription,
    SubscriptionComponent,
    SubscriptionStatus,
)
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.repositories.invoicing_config_repository import InvoicingConfigRepository
from billing_engine.repositories.plan_repository import PlanRepository
from billing_engine.repositories.subscription_repository import SubscriptionRepository
from billing_engine.schemas.subscription import SubscriptionCancel, SubscriptionCreate
from billing_engine.services.billing_periods import BillingCycle, ServicePeriod
from billing_engine.services.invoice_builder import InvoiceBuilder

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Service for managing subscriptions and their period invoices."""

    def __init__(self, db: Session):
        self.db = db
        self.subscription_repo = SubscriptionRepository(db)
        self.plan_repo = PlanRepository(db)
        self.invoice_repo = InvoiceRepository(db)
        self.config_repo = InvoicingConfigRepository(db)
        self.builder = InvoiceBuilder(db)

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Error while {action}") from exc

    def create_subscription(self, data: SubscriptionCreate, tenant_id: UUID) -> Subscription:
        """Create a subscription together with its first period invoice.

        1. Validate the plan offers the billing period and prices every component for it
        2. Resolve committed quantities: slot components need a parameter
        3. Snapshot the components on the subscription
        4. Create the draft invoice for the first (possibly stub) period
        """
        plan = self.plan_repo.get_by_id(data.plan_id, tenant_id)
        if not plan:
            raise BillingValidationError(f"Plan {data.plan_id} not found")

        period = data.billing_period.value
        if period not in (plan.billing_periods or []):
            raise BillingValidationError(f"Invalid billing period: {period}")
        for component in plan.components:
            if period not in (component.rates or {}):
                raise BillingValidationError(
                    f"Invalid billing period: {period} has no rate for component {component.name}"
                )

        if data.billing_end_date is not None and data.billing_end_date <= data.billing_start_date:
            raise BillingValidationError("Billing end date must be after the start date")

        components_by_id = {str(c.id): c for c in plan.components}
        quantities: dict[str, int] = {}
        for param in data.parameters:
            component = components_by_id.get(str(param.component_id))
            if component is None:
                raise BillingValidationError(f"Unknown parameter: {param.component_id}")
            if component.fee_type != FeeType.SLOT.value:
                raise BillingValidationError(
                    f"Parameter {param.component_id} is not a slot component"
                )
            if param.value < 0:
                raise BillingValidationError(f"Parameter {param.component_id} cannot be negative")
            if param.value < int(component.minimum_slots):
                raise BillingValidationError(
                    f"Parameter {param.component_id} is below the minimum of "
                    f"{component.minimum_slots} slots"
                )
            quantities[str(param.component_id)] = param.value

        subscription = Subscription(
            tenant_id=tenant_id,
            customer_id=data.customer_id,
            plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE.value,
            billing_period=period,
            billing_day=data.billing_day,
            billing_start_date=data.billing_start_date,
            billing_end_date=data.billing_end_date,
            net_terms=data.net_terms if data.net_terms is not None else plan.net_terms,
            currency=plan.currency,
            invoicing_provider=data.invoicing_provider.value,
        )
        for position, component in enumerate(plan.components):
            if component.fee_type == FeeType.SLOT.value:
                if str(component.id) not in quantities:
                    raise BillingValidationError(f"Missing parameter: {component.id}")
                committed = quantities[str(component.id)]
            else:
                committed = 1
            subscription.components.append(
                SubscriptionComponent(
                    price_component_id=component.id,
                    position=position,
                    name=component.name,
                    fee_type=component.fee_type,
                    unit_price_cents=Decimal(str(component.rates[period])),
                    committed_quantity=committed,
                    minimum_slots=component.minimum_slots,
                )
            )

        try:
            self.db.add(subscription)
            self.config_repo.get_or_create(
                tenant_id, settings.DEFAULT_GRACE_PERIOD_HOURS, commit=False
            )
            self.db.flush()
            cycle = self.builder.cycle_for(subscription)
            self.builder.build_period_invoice(
                subscription, cycle.first_period(data.billing_start_date), commit=False
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Error while creating subscription") from exc
        self._commit("creating subscription")
        self.db.refresh(subscription)

        logger.info(
            "Created subscription %s for customer %s on plan %s",
            subscription.id,
            subscription.customer_id,
            plan.id,
        )
        return subscription

    def cancel_subscription(
        self,
        subscription_id: UUID,
        tenant_id: UUID,
        data: SubscriptionCancel,
        now: datetime,
    ) -> Subscription:
        """Cancel a subscription.

        ``billing_period_end`` stops billing at the end of the current period.
        ``immediate`` ends it today and voids every invoice still open.
        """
        subscription = self.subscription_repo.get_by_id(subscription_id, tenant_id)
        if not subscription:
            raise BillingValidationError(f"Subscription {subscription_id} not found")
        if subscription.status != SubscriptionStatus.ACTIVE.value or subscription.canceled_at:
            raise BillingValidationError("Subscription is already canceled")

        today = now.date()
        if data.effective_at == CancellationEffect.IMMEDIATE:
            end = max(today, subscription.billing_start_date)  # type: ignore[type-var]
            subscription.status = SubscriptionStatus.CANCELED.value  # type: ignore[assignment]
        else:
            cycle = self.builder.cycle_for(subscription)
            end = cycle.period_containing(subscription.billing_start_date, today).end  # type: ignore[arg-type]

        if subscription.billing_end_date is None or end < subscription.billing_end_date:
            subscription.billing_end_date = end  # type: ignore[assignment]
        subscription.canceled_at = now  # type: ignore[assignment]
        subscription.cancellation_reason = data.reason  # type: ignore[assignment]
        voided = 0
        if data.effective_at == CancellationEffect.IMMEDIATE:
            voided = self.invoice_repo.void_open_for_subscription(subscription_id, tenant_id, now)
        self._commit("canceling subscription")

        self.db.refresh(subscription)
        logger.info(
            "Canceled subscription %s (%s), billing ends %s, %d invoices voided",
            subscription_id,
            data.effective_at.value,
            subscription.billing_end_date,
            voided,
        )
        return subscription

    def _renew(self, subscription: Subscription, today: date) -> int:
        latest = self.invoice_repo.get_latest_period_invoice(subscription.id)  # type: ignore[arg-type]
        if latest is None:
            return 0

        cycle: BillingCycle = self.builder.cycle_for(subscription)
        end_date = subscription.billing_end_date
        next_start: date = latest.billing_period_end  # type: ignore[assignment]
        count = 0
        while next_start <= today and (end_date is None or next_start < end_date):
            period = cycle.period_containing(subscription.billing_start_date, next_start)  # type: ignore[arg-type]
            period = ServicePeriod(next_start, period.end)
            self.builder.build_period_invoice(subscription, period, commit=True)
            count += 1
            next_start = period.end
        return count

    def generate_renewal_invoices(self, now: datetime, batch_size: int | None = None) -> int:
        """Create the draft invoice of every billing period that has started.

        Catches up on every missed period of a subscription, stopping at its
        billing end date. Subscriptions are walked in pages of ``batch_size``.
        """
        today = now.date()
        limit = batch_size or settings.SCHEDULER_BATCH_SIZE
        count = 0
        cursor: UUID | None = None
        while True:
            page = self.subscription_repo.list_billable(today, cursor, limit)
            for subscription in page.items:
                count += self._renew(subscription, today)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor
        if count > 0:
            logger.info("Generated %d renewal invoices", count)
        return count
