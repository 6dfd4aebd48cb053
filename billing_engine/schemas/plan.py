from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from billing_engine.models.plan import BillingPeriod, FeeType


class PriceComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    fee_type: FeeType = FeeType.RATE
    rates: dict[BillingPeriod, Decimal] = Field(default_factory=dict)
    minimum_slots: int = Field(default=0, ge=0)


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    billing_periods: list[BillingPeriod] = Field(min_length=1)
    net_terms: int = Field(default=0, ge=0)
    components: list[PriceComponentCreate] = Field(default_factory=list)


class PriceComponentResponse(BaseModel):
    id: UUID
    name: str
    fee_type: FeeType
    rates: dict[str, Decimal]
    minimum_slots: int

    model_config = {"from_attributes": True}


class PlanResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: str | None
    currency: str
    billing_periods: list[BillingPeriod]
    net_terms: int
    components: list[PriceComponentResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
