from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, false, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from billing_engine.core.exceptions import StorageError
from billing_engine.core.pagination import CursorPage, cursor_paginate
from billing_engine.models.invoice import (
    CLOSED_STATUSES,
    OPEN_STATUSES,
    Invoice,
    InvoiceExternalStatus,
    InvoiceStatus,
    InvoiceType,
    InvoicingProvider,
)
from billing_engine.models.invoicing_config import InvoicingConfig
from billing_engine.schemas.invoice import InvoiceCreate, InvoiceLine
from billing_engine.services.proration import lines_total

# Invoices are considered for recompute once their invoice date is this old.
OUTDATED_AFTER = timedelta(hours=1)


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_number(self, tenant_id: UUID, invoice_date: datetime) -> str:
        """Generate an invoice number unique within the tenant."""
        prefix = f"INV-{invoice_date.strftime('%Y%m%d')}-"

        # Get the highest invoice number for that day
        result = (
            self.db.query(Invoice.invoice_number)
            .filter(
                Invoice.tenant_id == tenant_id,
                Invoice.invoice_number.like(f"{prefix}%"),
            )
            .order_by(Invoice.invoice_number.desc())
            .first()
        )

        if result:
            # Extract number from INV-YYYYMMDD-XXXX format
            try:
                new_num = int(result[0].split("-")[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Error while {action}") from exc

    # ── Reads ────────────────────────────────────────────────────────────

    def get_all(
        self,
        tenant_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
        customer_id: UUID | None = None,
        subscription_id: UUID | None = None,
        status: InvoiceStatus | None = None,
    ) -> list[Invoice]:
        query = self.db.query(Invoice)

        if tenant_id is not None:
            query = query.filter(Invoice.tenant_id == tenant_id)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if subscription_id:
            query = query.filter(Invoice.subscription_id == subscription_id)
        if status:
            query = query.filter(Invoice.status == status.value)

        return query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit).all()

    def count(self, tenant_id: UUID | None = None) -> int:
        query = self.db.query(Invoice)
        if tenant_id is not None:
            query = query.filter(Invoice.tenant_id == tenant_id)
        return query.count()

    def get_by_id(self, invoice_id: UUID, tenant_id: UUID | None = None) -> Invoice | None:
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if tenant_id is not None:
            query = query.filter(Invoice.tenant_id == tenant_id)
        return query.first()

    def get_by_subscription(
        self, subscription_id: UUID, invoice_type: InvoiceType | None = None
    ) -> list[Invoice]:
        query = self.db.query(Invoice).filter(Invoice.subscription_id == subscription_id)
        if invoice_type is not None:
            query = query.filter(Invoice.invoice_type == invoice_type.value)
        return query.order_by(Invoice.billing_period_start.asc(), Invoice.created_at.asc()).all()

    def get_latest_period_invoice(self, subscription_id: UUID) -> Invoice | None:
        """The subscription invoice covering the most recent billing period."""
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.subscription_id == subscription_id,
                Invoice.invoice_type == InvoiceType.SUBSCRIPTION.value,
            )
            .order_by(Invoice.billing_period_end.desc())
            .first()
        )

    # ── Writes ───────────────────────────────────────────────────────────

    def create(self, data: InvoiceCreate, tenant_id: UUID, commit: bool = True) -> Invoice:
        """Insert a draft invoice.

        With ``commit=False`` the row is only flushed, so the caller can commit
        it together with other writes.
        """
        total = lines_total(data.line_items)
        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=self._generate_invoice_number(tenant_id, data.invoice_date),
            customer_id=data.customer_id,
            subscription_id=data.subscription_id,
            invoice_type=data.invoice_type.value,
            invoicing_provider=data.invoicing_provider.value,
            status=InvoiceStatus.DRAFT.value,
            external_status=InvoiceExternalStatus.NOT_ISSUED.value,
            currency=data.currency,
            billing_period_start=data.billing_period_start,
            billing_period_end=data.billing_period_end,
            subtotal_cents=total,
            total_cents=total,
            line_items=[line.to_json() for line in data.line_items],
            invoice_date=data.invoice_date,
            due_date=data.due_date,
            data_updated_at=None,
        )
        self.db.add(invoice)
        if not commit:
            self.db.flush()
            return invoice

        self._commit("inserting invoice")
        self.db.refresh(invoice)
        return invoice

    def conditional_update(
        self,
        invoice_id: UUID,
        tenant_id: UUID,
        expected: Sequence[ColumnElement[bool]],
        values: dict[Any, Any],
        action: str = "updating invoice",
    ) -> int:
        """Apply ``values`` only if the row still matches ``expected``.

        Returns the number of rows affected. Zero means the invoice is gone or
        another actor already moved it out of the expected state.
        """
        try:
            rows = (
                self.db.query(Invoice)
                .filter(Invoice.id == invoice_id, Invoice.tenant_id == tenant_id, *expected)
                .update(values, synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Error while {action}") from exc
        self._commit(action)
        return int(rows)

    def finalize(self, invoice_id: UUID, tenant_id: UUID, now: datetime) -> int:
        return self.conditional_update(
            invoice_id,
            tenant_id,
            [Invoice.status.notin_(CLOSED_STATUSES)],
            {
                Invoice.status: InvoiceStatus.FINALIZED.value,
                Invoice.updated_at: now,
                Invoice.data_updated_at: now,
                Invoice.finalized_at: now,
            },
            action="finalizing invoice",
        )

    def void(self, invoice_id: UUID, tenant_id: UUID, now: datetime) -> int:
        return self.conditional_update(
            invoice_id,
            tenant_id,
            [Invoice.status.in_(OPEN_STATUSES)],
            {Invoice.status: InvoiceStatus.VOID.value, Invoice.updated_at: now},
            action="voiding invoice",
        )

    def void_open_for_subscription(
        self, subscription_id: UUID, tenant_id: UUID, now: datetime
    ) -> int:
        """Void every Draft or Pending invoice of a subscription.

        Not committed here: the caller commits it together with its own changes.
        """
        try:
            rows = (
                self.db.query(Invoice)
                .filter(
                    Invoice.subscription_id == subscription_id,
                    Invoice.tenant_id == tenant_id,
                    Invoice.status.in_(OPEN_STATUSES),
                )
                .update(
                    {Invoice.status: InvoiceStatus.VOID.value, Invoice.updated_at: now},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Error while voiding subscription invoices") from exc
        return int(rows)

    def update_lines(
        self,
        invoice_id: UUID,
        tenant_id: UUID,
        lines: Sequence[InvoiceLine],
        now: datetime,
    ) -> int:
        total = lines_total(lines)
        return self.conditional_update(
            invoice_id,
            tenant_id,
            [Invoice.status.notin_(CLOSED_STATUSES)],
            {
                Invoice.line_items: [line.to_json() for line in lines],
                Invoice.subtotal_cents: total,
                Invoice.total_cents: total,
                Invoice.data_updated_at: now,
                Invoice.updated_at: now,
            },
            action="updating invoice lines",
        )

    def issue_success(self, invoice_id: UUID, tenant_id: UUID, now: datetime) -> int:
        return self.conditional_update(
            invoice_id,
            tenant_id,
            [Invoice.status == InvoiceStatus.FINALIZED.value, Invoice.issued.is_(False)],
            {
                Invoice.issued: True,
                Invoice.external_status: InvoiceExternalStatus.ISSUED.value,
                Invoice.issue_attempts: Invoice.issue_attempts + 1,
                Invoice.updated_at: now,
                Invoice.last_issue_attempt_at: now,
            },
            action="recording invoice issue success",
        )

    def issue_error(
        self, invoice_id: UUID, tenant_id: UUID, last_issue_error: str, now: datetime
    ) -> int:
        return self.conditional_update(
            invoice_id,
            tenant_id,
            [Invoice.status == InvoiceStatus.FINALIZED.value, Invoice.issued.is_(False)],
            {
                Invoice.external_status: InvoiceExternalStatus.ERROR.value,
                Invoice.last_issue_error: last_issue_error,
                Invoice.issue_attempts: Invoice.issue_attempts + 1,
                Invoice.updated_at: now,
                Invoice.last_issue_attempt_at: now,
            },
            action="recording invoice issue error",
        )

    def promote_pending(self, now: datetime) -> int:
        """Move every draft invoice inside its tenant's grace window to pending."""
        eligible = (
            select(Invoice.id)
            .join(InvoicingConfig, Invoice.tenant_id == InvoicingConfig.tenant_id)
            .where(
                Invoice.status == InvoiceStatus.DRAFT.value,
                Invoice.invoice_date < now,
                self._grace_clause(now, elapsed=False),
            )
            .correlate(None)
        )
        try:
            rows = (
                self.db.query(Invoice)
                .filter(Invoice.id.in_(eligible), Invoice.status == InvoiceStatus.DRAFT.value)
                .update(
                    {Invoice.status: InvoiceStatus.PENDING.value, Invoice.updated_at: now},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Error while promoting pending invoices") from exc
        self._commit("promoting pending invoices")
        return int(rows)

    # ── Sweeps ───────────────────────────────────────────────────────────

    def _grace_clause(self, now: datetime, elapsed: bool) -> ColumnElement[bool]:
        """Compare invoice_date to now minus the joined tenant's grace period.

        Grace periods differ per tenant, so one cutoff is built per distinct
        configured value.
        """
        hours = [
            row[0]
            for row in self.db.query(InvoicingConfig.grace_period_hours).distinct().all()
        ]
        if not hours:
            return false()

        clauses = []
        for grace_hours in hours:
            cutoff = now - timedelta(hours=int(grace_hours))
            if elapsed:
                condition = Invoice.invoice_date < cutoff
            else:
                condition = Invoice.invoice_date >= cutoff
            clauses.append(and_(InvoicingConfig.grace_period_hours == grace_hours, condition))
        return or_(*clauses)

    def list_to_finalize(
        self, now: datetime, cursor: UUID | None = None, limit: int = 100
    ) -> CursorPage[Invoice]:
        query = (
            self.db.query(Invoice)
            .join(InvoicingConfig, Invoice.tenant_id == InvoicingConfig.tenant_id)
            .filter(
                Invoice.status.notin_(CLOSED_STATUSES),
                self._grace_clause(now, elapsed=True),
            )
        )
        return cursor_paginate(query, Invoice.id, cursor, limit, key_of=lambda i: i.id)

    def list_outdated(
        self,
        now: datetime,
        recompute_interval: timedelta,
        cursor: UUID | None = None,
        limit: int = 100,
    ) -> CursorPage[Invoice]:
        query = self.db.query(Invoice).filter(
            Invoice.status.notin_(CLOSED_STATUSES),
            or_(
                Invoice.data_updated_at.is_(None),
                and_(
                    Invoice.invoice_date < now - OUTDATED_AFTER,
                    Invoice.data_updated_at < now - recompute_interval,
                ),
            ),
        )
        return cursor_paginate(query, Invoice.id, cursor, limit, key_of=lambda i: i.id)

    def list_to_issue(
        self, max_attempts: int, cursor: UUID | None = None, limit: int = 100
    ) -> CursorPage[Invoice]:
        query = self.db.query(Invoice).filter(
            Invoice.status == InvoiceStatus.FINALIZED.value,
            Invoice.invoicing_provider != InvoicingProvider.MANUAL.value,
            Invoice.issued.is_(False),
            Invoice.issue_attempts < max_attempts,
        )
        return cursor_paginate(query, Invoice.id, cursor, limit, key_of=lambda i: i.id)

    def list_issue_failures(self, tenant_id: UUID, max_attempts: int) -> list[Invoice]:
        """Finalized invoices that exhausted automatic issuance."""
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.tenant_id == tenant_id,
                Invoice.status == InvoiceStatus.FINALIZED.value,
                Invoice.invoicing_provider != InvoicingProvider.MANUAL.value,
                Invoice.issued.is_(False),
                Invoice.issue_attempts >= max_attempts,
            )
            .order_by(Invoice.last_issue_attempt_at.desc())
            .all()
        )
