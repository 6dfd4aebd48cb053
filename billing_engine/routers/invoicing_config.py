from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing_engine.core.config import settings
from billing_engine.core.database import get_db
from billing_engine.core.tenant import get_current_tenant
from billing_engine.models.invoicing_config import InvoicingConfig
from billing_engine.repositories.invoicing_config_repository import InvoicingConfigRepository
from billing_engine.schemas.invoicing_config import (
    InvoicingConfigResponse,
    InvoicingConfigUpdate,
)

router = APIRouter()


@router.get("/", response_model=InvoicingConfigResponse, summary="Get invoicing config")
async def get_invoicing_config(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> InvoicingConfig:
    return InvoicingConfigRepository(db).get_or_create(
        tenant_id, settings.DEFAULT_GRACE_PERIOD_HOURS
    )


@router.put("/", response_model=InvoicingConfigResponse, summary="Update invoicing config")
async def update_invoicing_config(
    data: InvoicingConfigUpdate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> InvoicingConfig:
    """Set the grace period applied to the tenant's draft invoices."""
    return InvoicingConfigRepository(db).upsert(tenant_id, data.grace_period_hours)
