from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from billing_engine.core.database import Base
from billing_engine.models.shared import DEFAULT_TENANT_ID, UUIDType, generate_uuid


class BillingPeriod(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class FeeType(str, Enum):
    """How a price component is billed."""

    RATE = "rate"  # flat recurring rate, quantity 1
    SLOT = "slot"  # per-seat rate, quantity from the slot ledger


class Plan(Base):
    __tablename__ = "plans"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(UUIDType, nullable=False, index=True, default=DEFAULT_TENANT_ID)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    # Billing periods a subscription may commit to, e.g. ["monthly", "annual"]
    billing_periods = Column(JSON, nullable=False, default=list)
    net_terms = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    components = relationship(
        "PriceComponent",
        back_populates="plan",
        order_by="PriceComponent.created_at",
        cascade="all, delete-orphan",
    )


class PriceComponent(Base):
    __tablename__ = "price_components"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    plan_id = Column(
        UUIDType, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    fee_type = Column(String(20), nullable=False, default=FeeType.RATE.value)
    # Unit price in cents per billing period, e.g. {"monthly": "1000", "annual": "10000"}
    rates = Column(JSON, nullable=False, default=dict)
    minimum_slots = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    plan = relationship("Plan", back_populates="components")
