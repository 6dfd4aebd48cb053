from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.core.pagination import CursorPage, cursor_paginate
from billing_engine.models.subscription import Subscription, SubscriptionStatus


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        tenant_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
        customer_id: UUID | None = None,
    ) -> list[Subscription]:
        query = self.db.query(Subscription)
        if tenant_id is not None:
            query = query.filter(Subscription.tenant_id == tenant_id)
        if customer_id:
            query = query.filter(Subscription.customer_id == customer_id)
        return query.order_by(Subscription.created_at.desc()).offset(skip).limit(limit).all()

    def count(self, tenant_id: UUID | None = None) -> int:
        query = self.db.query(Subscription)
        if tenant_id is not None:
            query = query.filter(Subscription.tenant_id == tenant_id)
        return query.count()

    def get_by_id(
        self, subscription_id: UUID, tenant_id: UUID | None = None
    ) -> Subscription | None:
        query = self.db.query(Subscription).filter(Subscription.id == subscription_id)
        if tenant_id is not None:
            query = query.filter(Subscription.tenant_id == tenant_id)
        return query.first()

    def list_billable(
        self, today: date, cursor: UUID | None = None, limit: int = 100
    ) -> CursorPage[Subscription]:
        """Active subscriptions whose billing has started, one page at a time."""
        query = self.db.query(Subscription).filter(
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.billing_start_date <= today,
        )
        return cursor_paginate(query, Subscription.id, cursor, limit, key_of=lambda s: s.id)
