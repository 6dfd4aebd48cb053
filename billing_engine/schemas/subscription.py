from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from billing_engine.models.invoice import InvoicingProvider
from billing_engine.models.plan import BillingPeriod, FeeType
from billing_engine.models.subscription import CancellationEffect, SubscriptionStatus


class SubscriptionParameter(BaseModel):
    """Committed quantity for one price component."""

    component_id: UUID
    value: int


class SubscriptionCreate(BaseModel):
    customer_id: UUID
    plan_id: UUID
    billing_period: BillingPeriod
    billing_start_date: date
    billing_end_date: date | None = None
    billing_day: int = Field(..., ge=1, le=31)
    net_terms: int | None = Field(default=None, ge=0)
    invoicing_provider: InvoicingProvider = InvoicingProvider.MANUAL
    parameters: list[SubscriptionParameter] = Field(default_factory=list)


class SubscriptionCancel(BaseModel):
    effective_at: CancellationEffect = CancellationEffect.BILLING_PERIOD_END
    reason: str | None = Field(default=None, max_length=1000)


class SubscriptionComponentResponse(BaseModel):
    price_component_id: UUID
    name: str
    fee_type: FeeType
    unit_price_cents: Decimal
    committed_quantity: int
    minimum_slots: int

    model_config = {"from_attributes": True}


class SubscriptionResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    customer_id: UUID
    plan_id: UUID
    status: SubscriptionStatus
    billing_period: BillingPeriod
    billing_day: int
    billing_start_date: date
    billing_end_date: date | None
    net_terms: int
    currency: str
    invoicing_provider: InvoicingProvider
    canceled_at: datetime | None
    cancellation_reason: str | None
    components: list[SubscriptionComponentResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ApplySlotsDeltaRequest(BaseModel):
    price_component_id: UUID
    delta: int


class ActiveSlotsResponse(BaseModel):
    subscription_id: UUID
    price_component_id: UUID
    active_slots: int
