"""Slot transaction repository: append-only ledger access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from billing_engine.models.slot_transaction import SlotTransaction
from billing_engine.models.subscription import SubscriptionComponent


class SlotTransactionRepository:
    """Repository for SlotTransaction model.

    Writes are flushed, never committed: a ledger append is always part of a
    larger unit of work owned by the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_component(
        self,
        subscription_id: UUID,
        price_component_id: UUID,
        for_update: bool = False,
    ) -> SubscriptionComponent | None:
        """Load the committed component, optionally locking it for the transaction."""
        query = self.db.query(SubscriptionComponent).filter(
            SubscriptionComponent.subscription_id == subscription_id,
            SubscriptionComponent.price_component_id == price_component_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_for_component(
        self, subscription_id: UUID, price_component_id: UUID
    ) -> list[SlotTransaction]:
        """All transactions of a component in append order."""
        return (
            self.db.query(SlotTransaction)
            .filter(
                SlotTransaction.subscription_id == subscription_id,
                SlotTransaction.price_component_id == price_component_id,
            )
            .order_by(SlotTransaction.sequence.asc())
            .all()
        )

    def sum_deltas(
        self, subscription_id: UUID, price_component_id: UUID, at: datetime
    ) -> int:
        """Sum of the deltas in effect at ``at`` (effective_at <= at)."""
        total = (
            self.db.query(func.coalesce(func.sum(SlotTransaction.delta), 0))
            .filter(
                SlotTransaction.subscription_id == subscription_id,
                SlotTransaction.price_component_id == price_component_id,
                SlotTransaction.effective_at <= at,
            )
            .scalar()
        )
        return int(total or 0)

    def active_slots_at(
        self, subscription_id: UUID, price_component_id: UUID, at: datetime
    ) -> int:
        """Committed baseline plus every delta effective at ``at``.

        Returns 0 for a component the subscription does not have.
        """
        component = self.get_component(subscription_id, price_component_id)
        if component is None:
            return 0
        return int(component.committed_quantity) + self.sum_deltas(
            subscription_id, price_component_id, at
        )

    def billed_slots_from(
        self, subscription_id: UUID, price_component_id: UUID, at: datetime
    ) -> int:
        """Slots a billing period starting at ``at`` is charged for.

        Same as :meth:`active_slots_at`, except that increases effective exactly
        at ``at`` are left out: each increase carries its own adjustment invoice
        running to the end of its period. Decreases effective at ``at`` count.
        """
        component = self.get_component(subscription_id, price_component_id)
        if component is None:
            return 0
        total = (
            self.db.query(func.coalesce(func.sum(SlotTransaction.delta), 0))
            .filter(
                SlotTransaction.subscription_id == subscription_id,
                SlotTransaction.price_component_id == price_component_id,
                or_(
                    SlotTransaction.effective_at < at,
                    and_(SlotTransaction.effective_at == at, SlotTransaction.delta < 0),
                ),
            )
            .scalar()
        )
        return int(component.committed_quantity) + int(total or 0)

    def next_sequence(self, subscription_id: UUID, price_component_id: UUID) -> int:
        current = (
            self.db.query(func.max(SlotTransaction.sequence))
            .filter(
                SlotTransaction.subscription_id == subscription_id,
                SlotTransaction.price_component_id == price_component_id,
            )
            .scalar()
        )
        return int(current or 0) + 1

    def append(
        self,
        subscription_id: UUID,
        price_component_id: UUID,
        delta: int,
        effective_at: datetime,
        transaction_at: datetime,
        resulting_slots: int,
    ) -> SlotTransaction:
        transaction = SlotTransaction(
            subscription_id=subscription_id,
            price_component_id=price_component_id,
            sequence=self.next_sequence(subscription_id, price_component_id),
            delta=delta,
            effective_at=effective_at,
            transaction_at=transaction_at,
            resulting_slots=resulting_slots,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction
