from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint, func

from billing_engine.core.database import Base
from billing_engine.models.shared import UUIDType, generate_uuid


class SlotTransaction(Base):
    """Append-only slot delta for a subscription component."""

    __tablename__ = "slot_transactions"
    __table_args__ = (
        # Two writers racing on the same component cannot both claim a sequence.
        UniqueConstraint(
            "subscription_id",
            "price_component_id",
            "sequence",
            name="uq_slot_transactions_sequence",
        ),
        Index(
            "ix_slot_transactions_component_effective",
            "subscription_id",
            "price_component_id",
            "effective_at",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    subscription_id = Column(
        UUIDType, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    price_component_id = Column(UUIDType, nullable=False)
    sequence = Column(Integer, nullable=False)
    delta = Column(Integer, nullable=False)
    effective_at = Column(DateTime(timezone=True), nullable=False)
    transaction_at = Column(DateTime(timezone=True), nullable=False)
    resulting_slots = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
