from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from billing_engine.core.config import settings
from billing_engine.core.database import get_db
from billing_engine.core.tenant import get_current_tenant
from billing_engine.models.invoice import Invoice, InvoiceStatus
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.schemas.invoice import InvoiceResponse
from billing_engine.services.invoice_lifecycle import InvoiceLifecycleService

router = APIRouter()


@router.get("/", response_model=list[InvoiceResponse], summary="List invoices")
async def list_invoices(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    customer_id: UUID | None = None,
    subscription_id: UUID | None = None,
    status: InvoiceStatus | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[Invoice]:
    """List invoices with optional filters."""
    repo = InvoiceRepository(db)
    response.headers["X-Total-Count"] = str(repo.count(tenant_id))
    return repo.get_all(
        tenant_id=tenant_id,
        skip=skip,
        limit=limit,
        customer_id=customer_id,
        subscription_id=subscription_id,
        status=status,
    )


@router.get(
    "/issue_failures",
    response_model=list[InvoiceResponse],
    summary="List issue failures",
)
async def list_issue_failures(
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[Invoice]:
    """Finalized invoices that ran out of automatic issuance attempts."""
    return InvoiceRepository(db).list_issue_failures(
        tenant_id, settings.INVOICE_ISSUE_MAX_ATTEMPTS
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice",
    responses={404: {"description": "Invoice not found"}},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Invoice:
    """Get an invoice by ID."""
    invoice = InvoiceRepository(db).get_by_id(invoice_id, tenant_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.post(
    "/{invoice_id}/finalize",
    response_model=InvoiceResponse,
    summary="Finalize invoice",
    responses={
        400: {"description": "Invoice is already finalized or voided"},
        404: {"description": "Invoice not found"},
    },
)
async def finalize_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Invoice:
    """Finalize an invoice without waiting for its grace period."""
    repo = InvoiceRepository(db)
    if not repo.get_by_id(invoice_id, tenant_id):
        raise HTTPException(status_code=404, detail="Invoice not found")
    if not InvoiceLifecycleService(db).finalize(invoice_id, tenant_id, datetime.now(UTC)):
        raise HTTPException(status_code=400, detail="Invoice is already finalized or voided")
    db.expire_all()
    return repo.get_by_id(invoice_id, tenant_id)  # type: ignore[return-value]


@router.post(
    "/{invoice_id}/void",
    response_model=InvoiceResponse,
    summary="Void invoice",
    responses={
        400: {"description": "Only draft or pending invoices can be voided"},
        404: {"description": "Invoice not found"},
    },
)
async def void_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Invoice:
    repo = InvoiceRepository(db)
    if not repo.get_by_id(invoice_id, tenant_id):
        raise HTTPException(status_code=404, detail="Invoice not found")
    if not InvoiceLifecycleService(db).void(invoice_id, tenant_id, datetime.now(UTC)):
        raise HTTPException(
            status_code=400, detail="Only draft or pending invoices can be voided"
        )
    db.expire_all()
    return repo.get_by_id(invoice_id, tenant_id)  # type: ignore[return-value]
