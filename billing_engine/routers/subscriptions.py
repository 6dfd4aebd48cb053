from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from billing_engine.core.database import get_db
from billing_engine.core.exceptions import BillingValidationError, StorageError
from billing_engine.core.tenant import get_current_tenant
from billing_engine.models.subscription import Subscription
from billing_engine.repositories.subscription_repository import SubscriptionRepository
from billing_engine.schemas.subscription import (
    ActiveSlotsResponse,
    ApplySlotsDeltaRequest,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionResponse,
)
from billing_engine.services.slot_ledger import SlotLedgerService
from billing_engine.services.subscription_service import SubscriptionService

router = APIRouter()


def _get_subscription_or_404(db: Session, subscription_id: UUID, tenant_id: UUID) -> Subscription:
    subscription = SubscriptionRepository(db).get_by_id(subscription_id, tenant_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.post(
    "/",
    response_model=SubscriptionResponse,
    status_code=201,
    summary="Create subscription",
    responses={400: {"description": "Invalid billing period or parameters"}},
)
async def create_subscription(
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Subscription:
    """Create a subscription and the draft invoice for its first period."""
    try:
        return SubscriptionService(db).create_subscription(data, tenant_id)
    except BillingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get("/", response_model=list[SubscriptionResponse], summary="List subscriptions")
async def list_subscriptions(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    customer_id: UUID | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[Subscription]:
    repo = SubscriptionRepository(db)
    response.headers["X-Total-Count"] = str(repo.count(tenant_id))
    return repo.get_all(tenant_id=tenant_id, skip=skip, limit=limit, customer_id=customer_id)


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get subscription",
    responses={404: {"description": "Subscription not found"}},
)
async def get_subscription(
    subscription_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Subscription:
    return _get_subscription_or_404(db, subscription_id, tenant_id)


@router.post(
    "/{subscription_id}/cancel",
    response_model=SubscriptionResponse,
    summary="Cancel subscription",
    responses={
        400: {"description": "Subscription already canceled"},
        404: {"description": "Subscription not found"},
    },
)
async def cancel_subscription(
    subscription_id: UUID,
    data: SubscriptionCancel | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Subscription:
    _get_subscription_or_404(db, subscription_id, tenant_id)
    try:
        return SubscriptionService(db).cancel_subscription(
            subscription_id, tenant_id, data or SubscriptionCancel(), datetime.now(UTC)
        )
    except BillingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/{subscription_id}/slots",
    response_model=ActiveSlotsResponse,
    summary="Change slots",
    responses={
        400: {"description": "Slot change rejected"},
        404: {"description": "Subscription not found"},
        409: {"description": "Concurrent slot change"},
    },
)
async def apply_slots_delta(
    subscription_id: UUID,
    data: ApplySlotsDeltaRequest,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> ActiveSlotsResponse:
    """Add or remove slots; removals take effect at the end of the current period."""
    _get_subscription_or_404(db, subscription_id, tenant_id)
    try:
        active = SlotLedgerService(db).apply_delta(
            tenant_id,
            subscription_id,
            data.price_component_id,
            data.delta,
            datetime.now(UTC),
        )
    except BillingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except StorageError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return ActiveSlotsResponse(
        subscription_id=subscription_id,
        price_component_id=data.price_component_id,
        active_slots=active,
    )


@router.get(
    "/{subscription_id}/slots/{price_component_id}",
    response_model=ActiveSlotsResponse,
    summary="Get active slots",
    responses={404: {"description": "Subscription not found"}},
)
async def get_active_slots(
    subscription_id: UUID,
    price_component_id: UUID,
    at: datetime | None = None,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> ActiveSlotsResponse:
    _get_subscription_or_404(db, subscription_id, tenant_id)
    when = at or datetime.now(UTC)
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    active = SlotLedgerService(db).active_slots_at(subscription_id, price_component_id, when)
    return ActiveSlotsResponse(
        subscription_id=subscription_id,
        price_component_id=price_component_id,
        active_slots=active,
    )
