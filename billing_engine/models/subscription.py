from enum import Enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from billing_engine.core.database import Base
from billing_engine.models.shared import DEFAULT_TENANT_ID, UUIDType, generate_uuid


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class CancellationEffect(str, Enum):
    IMMEDIATE = "immediate"
    BILLING_PERIOD_END = "billing_period_end"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(UUIDType, nullable=False, index=True, default=DEFAULT_TENANT_ID)
    customer_id = Column(UUIDType, nullable=False, index=True)
    plan_id = Column(
        UUIDType, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value, index=True
    )
    billing_period = Column(String(20), nullable=False)
    billing_day = Column(Integer, nullable=False)
    billing_start_date = Column(Date, nullable=False)
    billing_end_date = Column(Date, nullable=True)
    net_terms = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    invoicing_provider = Column(String(20), nullable=False, default="manual")
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    components = relationship(
        "SubscriptionComponent",
        back_populates="subscription",
        order_by="SubscriptionComponent.position",
        cascade="all, delete-orphan",
    )


class SubscriptionComponent(Base):
    """Price component as committed by a subscription.

    Snapshots the unit price for the subscription's billing period, and holds
    the committed slot baseline that ledger deltas are added to.
    """

    __tablename__ = "subscription_components"
    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "price_component_id", name="uq_subscription_components_component"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    subscription_id = Column(
        UUIDType, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price_component_id = Column(UUIDType, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    fee_type = Column(String(20), nullable=False)
    unit_price_cents = Column(Numeric(12, 4), nullable=False, default=0)
    committed_quantity = Column(Integer, nullable=False, default=1)
    minimum_slots = Column(Integer, nullable=False, default=0)

    subscription = relationship("Subscription", back_populates="components")
