"""Batch sweeps that drive invoices through their lifecycle.

Each sweep walks its candidates in pages keyed on invoice id and commits per
invoice, so a sweep stopped between pages leaves consistent state behind and
the next run simply starts over from what is stored.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from billing_engine.core.config import settings
from billing_engine.core.pagination import CursorPage
from billing_engine.models.invoice import Invoice, InvoicingProvider
from billing_engine.models.shared import as_utc
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.services.invoice_lifecycle import InvoiceLifecycleService
from billing_engine.services.invoicing_provider import (
    InvoicingProviderBase,
    get_invoicing_provider,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    promoted: int = 0
    finalized: int = 0
    refreshed: int = 0
    issued: int = 0
    issue_failed: int = 0
    stopped: bool = False


class InvoiceScheduler:
    def __init__(
        self,
        db: Session,
        provider_factory: Callable[[InvoicingProvider], InvoicingProviderBase] | None = None,
        batch_size: int | None = None,
        max_attempts: int | None = None,
        backoff_minutes: int | None = None,
        recompute_interval_minutes: int | None = None,
    ):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.lifecycle = InvoiceLifecycleService(db)
        self.provider_factory = provider_factory or get_invoicing_provider
        self.batch_size = batch_size or settings.SCHEDULER_BATCH_SIZE
        self.max_attempts = max_attempts or settings.INVOICE_ISSUE_MAX_ATTEMPTS
        self.backoff_minutes = (
            backoff_minutes
            if backoff_minutes is not None
            else settings.INVOICE_ISSUE_BACKOFF_MINUTES
        )
        self.recompute_interval = timedelta(
            minutes=recompute_interval_minutes or settings.INVOICE_RECOMPUTE_INTERVAL_MINUTES
        )
        self._stop_requested = False

    def request_stop(self) -> None:
        """Stop the running sweep after the current page."""
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        return self._stop_requested

    def _sweep(
        self,
        fetch: Callable[[UUID | None], CursorPage[Invoice]],
        handle: Callable[[Invoice], bool],
    ) -> int:
        count = 0
        cursor: UUID | None = None
        while not self._stop_requested:
            page = fetch(cursor)
            for invoice in page.items:
                if handle(invoice):
                    count += 1
            if page.next_cursor is None:
                break
            cursor = page.next_cursor
        return count

    def promote_pending(self, now: datetime) -> int:
        return self.lifecycle.promote_pending(now)

    def finalize_due(self, now: datetime) -> int:
        """Finalize every open invoice whose grace window has elapsed."""
        return self._sweep(
            lambda cursor: self.invoice_repo.list_to_finalize(now, cursor, self.batch_size),
            lambda invoice: self.lifecycle.finalize(
                invoice.id,  # type: ignore[arg-type]
                invoice.tenant_id,  # type: ignore[arg-type]
                now,
            ),
        )

    def refresh_outdated(self, now: datetime) -> int:
        """Recompute open invoices never computed or not recomputed lately."""
        return self._sweep(
            lambda cursor: self.invoice_repo.list_outdated(
                now, self.recompute_interval, cursor, self.batch_size
            ),
            lambda invoice: self.lifecycle.recompute(invoice, now),
        )

    def _backing_off(self, invoice: Invoice, now: datetime) -> bool:
        if invoice.last_issue_attempt_at is None:
            return False
        wait = timedelta(minutes=(2 ** int(invoice.issue_attempts)) * self.backoff_minutes)
        return now < as_utc(invoice.last_issue_attempt_at) + wait  # type: ignore[arg-type]

    def issue_finalized(self, now: datetime) -> tuple[int, int]:
        """Issue finalized invoices that still have attempts left.

        Returns:
            Tuple of (issued, failed) counts for this sweep.
        """
        failed = 0

        def handle(invoice: Invoice) -> bool:
            nonlocal failed
            if self._backing_off(invoice, now):
                return False
            provider = self.provider_factory(InvoicingProvider(invoice.invoicing_provider))
            if self.lifecycle.issue(invoice, provider, now):
                return True
            failed += 1
            return False

        issued = self._sweep(
            lambda cursor: self.invoice_repo.list_to_issue(
                self.max_attempts, cursor, self.batch_size
            ),
            handle,
        )
        return issued, failed

    def run(self, now: datetime) -> SweepResult:
        """Run every sweep once, in lifecycle order."""
        result = SweepResult()
        result.promoted = self.promote_pending(now)
        if not self._stop_requested:
            result.finalized = self.finalize_due(now)
        if not self._stop_requested:
            result.refreshed = self.refresh_outdated(now)
        if not self._stop_requested:
            result.issued, result.issue_failed = self.issue_finalized(now)
        result.stopped = self._stop_requested
        logger.info(
            "Invoice sweep: %d promoted, %d finalized, %d refreshed, %d issued, %d issue failures",
            result.promoted,
            result.finalized,
            result.refreshed,
            result.issued,
            result.issue_failed,
        )
        return result
