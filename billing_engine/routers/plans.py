from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from billing_engine.core.database import get_db
from billing_engine.core.tenant import get_current_tenant
from billing_engine.models.plan import Plan
from billing_engine.repositories.plan_repository import PlanRepository
from billing_engine.schemas.plan import PlanCreate, PlanResponse

router = APIRouter()


@router.post(
    "/",
    response_model=PlanResponse,
    status_code=201,
    summary="Create plan",
    responses={422: {"description": "Validation error"}},
)
async def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Plan:
    """Create a plan with its price components."""
    for component in data.components:
        missing = [p.value for p in data.billing_periods if p not in component.rates]
        if missing:
            raise HTTPException(
                status_code=400,
                detail=f"Component {component.name} has no rate for: {', '.join(missing)}",
            )
    return PlanRepository(db).create(data, tenant_id)


@router.get("/", response_model=list[PlanResponse], summary="List plans")
async def list_plans(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> list[Plan]:
    repo = PlanRepository(db)
    response.headers["X-Total-Count"] = str(repo.count(tenant_id))
    return repo.get_all(tenant_id=tenant_id, skip=skip, limit=limit)


@router.get(
    "/{plan_id}",
    response_model=PlanResponse,
    summary="Get plan",
    responses={404: {"description": "Plan not found"}},
)
async def get_plan(
    plan_id: UUID,
    db: Session = Depends(get_db),
    tenant_id: UUID = Depends(get_current_tenant),
) -> Plan:
    plan = PlanRepository(db).get_by_id(plan_id, tenant_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan
