from uuid import UUID

from pydantic import BaseModel, Field


class InvoicingConfigUpdate(BaseModel):
    grace_period_hours: int = Field(..., ge=0, le=24 * 90)


class InvoicingConfigResponse(BaseModel):
    tenant_id: UUID
    grace_period_hours: int

    model_config = {"from_attributes": True}
