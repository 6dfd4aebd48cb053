from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from billing_engine.models.invoice import (
    InvoiceExternalStatus,
    InvoiceStatus,
    InvoiceType,
    InvoicingProvider,
)


class LinePeriod(BaseModel):
    """Half-open service interval [from, to) a line item was priced for."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: date = Field(alias="from")
    to: date


class InvoiceLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int | None = None
    unit_price: Decimal
    total: Decimal
    period: LinePeriod
    price_component_id: UUID | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InvoiceCreate(BaseModel):
    customer_id: UUID
    subscription_id: UUID | None = None
    invoice_type: InvoiceType = InvoiceType.SUBSCRIPTION
    invoicing_provider: InvoicingProvider = InvoicingProvider.MANUAL
    currency: str = Field(default="USD", min_length=3, max_length=3)
    billing_period_start: date
    billing_period_end: date
    invoice_date: datetime
    due_date: datetime | None = None
    line_items: list[InvoiceLine] = Field(default_factory=list)


class InvoiceResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    invoice_number: str
    customer_id: UUID
    subscription_id: UUID | None
    invoice_type: InvoiceType
    status: InvoiceStatus
    external_status: InvoiceExternalStatus
    invoicing_provider: InvoicingProvider
    billing_period_start: date
    billing_period_end: date
    subtotal_cents: Decimal
    total_cents: Decimal
    currency: str
    line_items: list[dict[str, Any]]
    invoice_date: datetime
    due_date: datetime | None
    finalized_at: datetime | None
    data_updated_at: datetime | None
    issued: bool
    issue_attempts: int
    last_issue_error: str | None
    last_issue_attempt_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
