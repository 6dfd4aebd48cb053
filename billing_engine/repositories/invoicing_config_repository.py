from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.models.invoicing_config import InvoicingConfig


class InvoicingConfigRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, tenant_id: UUID) -> InvoicingConfig | None:
        return self.db.query(InvoicingConfig).filter(InvoicingConfig.tenant_id == tenant_id).first()

    def get_or_create(
        self, tenant_id: UUID, grace_period_hours: int, commit: bool = True
    ) -> InvoicingConfig:
        config = self.get(tenant_id)
        if config:
            return config

        config = InvoicingConfig(tenant_id=tenant_id, grace_period_hours=grace_period_hours)
        self.db.add(config)
        if commit:
            self.db.commit()
            self.db.refresh(config)
        else:
            self.db.flush()
        return config

    def upsert(self, tenant_id: UUID, grace_period_hours: int) -> InvoicingConfig:
        config = self.get(tenant_id)
        if config is None:
            config = InvoicingConfig(tenant_id=tenant_id)
            self.db.add(config)
        config.grace_period_hours = grace_period_hours  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(config)
        return config
