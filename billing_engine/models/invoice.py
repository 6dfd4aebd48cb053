from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)

from billing_engine.core.database import Base
from billing_engine.models.shared import DEFAULT_TENANT_ID, UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    FINALIZED = "finalized"
    VOID = "void"


class InvoiceExternalStatus(str, Enum):
    NOT_ISSUED = "not_issued"
    ISSUED = "issued"
    ERROR = "error"


class InvoiceType(str, Enum):
    SUBSCRIPTION = "subscription"
    ADJUSTMENT = "adjustment"


class InvoicingProvider(str, Enum):
    MANUAL = "manual"
    HTTP = "http"


# Statuses in which line items may still be rewritten.
OPEN_STATUSES = (InvoiceStatus.DRAFT.value, InvoiceStatus.PENDING.value)
CLOSED_STATUSES = (InvoiceStatus.FINALIZED.value, InvoiceStatus.VOID.value)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    tenant_id = Column(UUIDType, nullable=False, index=True, default=DEFAULT_TENANT_ID)
    invoice_number = Column(String(50), nullable=False, index=True)
    customer_id = Column(UUIDType, nullable=False, index=True)
    subscription_id = Column(UUIDType, nullable=True, index=True)
    invoice_type = Column(String(20), nullable=False, default=InvoiceType.SUBSCRIPTION.value)

    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)
    external_status = Column(
        String(20), nullable=False, default=InvoiceExternalStatus.NOT_ISSUED.value
    )
    invoicing_provider = Column(
        String(20), nullable=False, default=InvoicingProvider.MANUAL.value
    )

    # Billing period covered by the line items (half-open)
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)

    # Amounts in cents (stored as Decimal with 4 decimal places for precision)
    subtotal_cents = Column(Numeric(12, 4), nullable=False, default=0)
    total_cents = Column(Numeric(12, 4), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    # Line items stored as JSON array
    line_items = Column(JSON, nullable=False, default=list)

    # Dates
    invoice_date = Column(DateTime(timezone=True), nullable=False, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    data_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Issuance bookkeeping
    issued = Column(Boolean, nullable=False, default=False)
    issue_attempts = Column(Integer, nullable=False, default=0)
    last_issue_error = Column(Text, nullable=True)
    last_issue_attempt_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
