"""Invoice lifecycle: Draft -> Pending -> Finalized -> issued, or Void.

Every transition is a conditional update on the invoice's current state.
Zero rows affected means another actor got there first; that is reported to
the caller as ``False`` and never raised.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.core.exceptions import IssuanceError
from billing_engine.models.invoice import CLOSED_STATUSES, Invoice, InvoiceStatus, InvoiceType
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.repositories.subscription_repository import SubscriptionRepository
from billing_engine.schemas.invoice import InvoiceLine
from billing_engine.services.billing_periods import ServicePeriod
from billing_engine.services.invoice_builder import InvoiceBuilder
from billing_engine.services.invoicing_provider import InvoicingProviderBase

logger = logging.getLogger(__name__)


class InvoiceLifecycleService:
    """Service for moving invoices through their lifecycle."""

    def __init__(self, db: Session):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.builder = InvoiceBuilder(db)

    def promote_pending(self, now: datetime) -> int:
        """Move draft invoices whose grace window has opened to pending."""
        count = self.invoice_repo.promote_pending(now)
        if count > 0:
            logger.info("Promoted %d draft invoices to pending", count)
        return count

    def finalize(self, invoice_id: UUID, tenant_id: UUID, now: datetime) -> bool:
        rows = self.invoice_repo.finalize(invoice_id, tenant_id, now)
        if rows == 0:
            logger.info("Invoice %s already closed, finalize skipped", invoice_id)
            return False
        logger.info("Finalized invoice %s", invoice_id)
        return True

    def void(self, invoice_id: UUID, tenant_id: UUID, now: datetime) -> bool:
        rows = self.invoice_repo.void(invoice_id, tenant_id, now)
        if rows == 0:
            logger.info("Invoice %s is no longer open, void skipped", invoice_id)
            return False
        logger.info("Voided invoice %s", invoice_id)
        return True

    def _current_lines(self, invoice: Invoice) -> list[InvoiceLine]:
        """Line items as they should read now.

        Subscription invoices are re-priced from the current ledger; adjustment
        invoices bill a fixed change and keep their lines.
        """
        stored = [InvoiceLine.model_validate(item) for item in invoice.line_items or []]
        if invoice.invoice_type != InvoiceType.SUBSCRIPTION.value or not invoice.subscription_id:
            return stored

        subscription = self.subscription_repo.get_by_id(
            invoice.subscription_id,  # type: ignore[arg-type]
            invoice.tenant_id,  # type: ignore[arg-type]
        )
        if subscription is None:
            return stored

        interval = ServicePeriod(
            invoice.billing_period_start,  # type: ignore[arg-type]
            invoice.billing_period_end,  # type: ignore[arg-type]
        )
        nominal = self.builder.nominal_for(subscription, interval)
        return self.builder.period_lines(subscription, nominal, interval)

    def recompute(self, invoice: Invoice, now: datetime) -> bool:
        """Rebuild the line items of an invoice that is not closed yet."""
        if invoice.status in CLOSED_STATUSES:
            logger.info("Invoice %s is closed, recompute skipped", invoice.id)
            return False

        lines = self._current_lines(invoice)
        rows = self.invoice_repo.update_lines(
            invoice.id,  # type: ignore[arg-type]
            invoice.tenant_id,  # type: ignore[arg-type]
            lines,
            now,
        )
        if rows == 0:
            logger.info("Invoice %s closed during recompute, update skipped", invoice.id)
            return False
        return True

    def issue(self, invoice: Invoice, provider: InvoicingProviderBase, now: datetime) -> bool:
        """Issue a finalized invoice and record the outcome.

        Returns True only when the provider accepted the invoice and the
        success was recorded.
        """
        invoice_id = UUID(str(invoice.id))
        tenant_id = UUID(str(invoice.tenant_id))
        if invoice.status != InvoiceStatus.FINALIZED.value or invoice.issued:
            logger.info("Invoice %s is not awaiting issuance, issue skipped", invoice_id)
            return False

        try:
            result = provider.issue(invoice)
        except IssuanceError as exc:
            logger.warning("Issuing invoice %s failed: %s", invoice_id, exc)
            rows = self.invoice_repo.issue_error(invoice_id, tenant_id, str(exc)[:1000], now)
            if rows == 0:
                logger.info("Invoice %s no longer awaits issuance", invoice_id)
            return False

        rows = self.invoice_repo.issue_success(invoice_id, tenant_id, now)
        if rows == 0:
            logger.info("Invoice %s no longer awaits issuance", invoice_id)
            return False
        logger.info(
            "Issued invoice %s via %s (external id %s)",
            invoice_id,
            provider.provider_name.value,
            result.external_id,
        )
        return True
