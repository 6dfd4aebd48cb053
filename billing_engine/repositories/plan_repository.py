from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.models.plan import Plan, PriceComponent
from billing_engine.schemas.plan import PlanCreate


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self, tenant_id: UUID | None = None, skip: int = 0, limit: int = 100) -> list[Plan]:
        query = self.db.query(Plan)
        if tenant_id is not None:
            query = query.filter(Plan.tenant_id == tenant_id)
        return query.order_by(Plan.created_at.desc()).offset(skip).limit(limit).all()

    def count(self, tenant_id: UUID | None = None) -> int:
        query = self.db.query(Plan)
        if tenant_id is not None:
            query = query.filter(Plan.tenant_id == tenant_id)
        return query.count()

    def get_by_id(self, plan_id: UUID, tenant_id: UUID | None = None) -> Plan | None:
        query = self.db.query(Plan).filter(Plan.id == plan_id)
        if tenant_id is not None:
            query = query.filter(Plan.tenant_id == tenant_id)
        return query.first()

    def create(self, data: PlanCreate, tenant_id: UUID) -> Plan:
        plan = Plan(
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            currency=data.currency,
            billing_periods=[period.value for period in data.billing_periods],
            net_terms=data.net_terms,
        )
        for component in data.components:
            plan.components.append(
                PriceComponent(
                    name=component.name,
                    fee_type=component.fee_type.value,
                    rates={period.value: str(rate) for period, rate in component.rates.items()},
                    minimum_slots=component.minimum_slots,
                )
            )
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan
