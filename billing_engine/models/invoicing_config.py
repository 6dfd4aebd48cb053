from sqlalchemy import Column, DateTime, Integer, func

from billing_engine.core.database import Base
from billing_engine.models.shared import UUIDType


class InvoicingConfig(Base):
    """Per-tenant invoicing settings."""

    __tablename__ = "invoicing_configs"

    tenant_id = Column(UUIDType, primary_key=True)
    # Draft invoices stay editable (pending) for this long after their invoice
    # date, then become eligible for finalization.
    grace_period_hours = Column(Integer, nullable=False, default=24)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
