"""Slot (seat) ledger: applies signed deltas to slot-based price components.

Increases take effect immediately and are billed through a supplemental
adjustment invoice for the rest of the current period. Decreases are deferred
to the end of the current period, so the customer keeps what was paid for.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing_engine.core.exceptions import BillingValidationError, StorageError
from billing_engine.models.plan import FeeType
from billing_engine.models.shared import as_utc
from billing_engine.models.subscription import SubscriptionStatus
from billing_engine.repositories.slot_transaction_repository import SlotTransactionRepository
from billing_engine.repositories.subscription_repository import SubscriptionRepository
from billing_engine.services.billing_periods import start_of_day
from billing_engine.services.invoice_builder import InvoiceBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Step:
    effective_at: datetime
    sequence: int
    delta: int


class SlotLedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.slot_repo = SlotTransactionRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.builder = InvoiceBuilder(db)

    def active_slots_at(
        self, subscription_id: UUID, price_component_id: UUID, at: datetime
    ) -> int:
        return self.slot_repo.active_slots_at(subscription_id, price_component_id, at)

    def _check_floor(
        self,
        subscription_id: UUID,
        price_component_id: UUID,
        baseline: int,
        floor: int,
        candidate: _Step,
    ) -> None:
        """Reject ``candidate`` if any point of the resulting timeline drops below ``floor``."""
        steps = [
            _Step(as_utc(txn.effective_at), int(txn.sequence), int(txn.delta))  # type: ignore[arg-type]
            for txn in self.slot_repo.list_for_component(subscription_id, price_component_id)
        ]
        steps.append(candidate)
        steps.sort(key=lambda step: (step.effective_at, step.sequence))

        running = baseline
        for step in steps:
            running += step.delta
            if running < floor:
                raise BillingValidationError(
                    f"Slot count would drop to {running}, below the minimum of {floor}"
                )

    def apply_delta(
        self,
        tenant_id: UUID,
        subscription_id: UUID,
        price_component_id: UUID,
        delta: int,
        at: datetime,
    ) -> int:
        """Record a slot change and return the slots active right after it.

        A decrease returns the unchanged current count, since it only takes
        effect at the end of the current billing period.

        Raises:
            BillingValidationError: The change was rejected; nothing was written.
            StorageError: The write failed or lost a race with a concurrent change.
        """
        if delta == 0:
            raise BillingValidationError("Slot delta must not be zero")

        subscription = self.subscription_repo.get_by_id(subscription_id, tenant_id)
        if subscription is None:
            raise BillingValidationError(f"Subscription {subscription_id} not found")
        if subscription.status != SubscriptionStatus.ACTIVE.value:
            raise BillingValidationError("Slots can only be changed on active subscriptions")

        today = at.date()
        if today < subscription.billing_start_date:
            raise BillingValidationError("Slots cannot change before the subscription starts")
        if subscription.billing_end_date is not None and today >= subscription.billing_end_date:
            raise BillingValidationError("Slots cannot change after the subscription ends")

        component = self.slot_repo.get_component(
            subscription_id, price_component_id, for_update=True
        )
        if component is None:
            raise BillingValidationError(
                f"Price component {price_component_id} is not part of "
                f"subscription {subscription_id}"
            )
        if component.fee_type != FeeType.SLOT.value:
            raise BillingValidationError(f"Price component {price_component_id} is not slot-based")

        cycle = self.builder.cycle_for(subscription)
        period = cycle.period_containing(subscription.billing_start_date, today)  # type: ignore[arg-type]
        current = self.slot_repo.active_slots_at(subscription_id, price_component_id, at)

        if delta > 0:
            effective_at = at
            result = current + delta
        else:
            effective_at = start_of_day(period.end)
            sequence = self.slot_repo.next_sequence(subscription_id, price_component_id)
            self._check_floor(
                subscription_id,
                price_component_id,
                baseline=int(component.committed_quantity),
                floor=max(int(component.minimum_slots), 0),
                candidate=_Step(effective_at, sequence, delta),
            )
            result = current

        try:
            resulting_slots = delta + self.slot_repo.active_slots_at(
                subscription_id, price_component_id, effective_at
            )
            self.slot_repo.append(
                subscription_id,
                price_component_id,
                delta=delta,
                effective_at=effective_at,
                transaction_at=at,
                resulting_slots=resulting_slots,
            )
            if delta > 0:
                self.builder.build_adjustment_invoice(subscription, component, delta, at, period)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "Concurrent slot change on subscription %s component %s",
                subscription_id,
                price_component_id,
            )
            raise StorageError("Slot change conflicted with a concurrent change") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Error while recording slot change") from exc

        logger.info(
            "Applied slot delta %+d to subscription %s component %s (effective %s)",
            delta,
            subscription_id,
            price_component_id,
            effective_at.isoformat(),
        )
        return result
