import logging
from datetime import UTC, datetime
from typing import Any

from arq import cron

from billing_engine.core.database import SessionLocal
from billing_engine.services.invoice_scheduler import InvoiceScheduler
from billing_engine.services.subscription_service import SubscriptionService
from billing_engine.tasks import redis_settings

logger = logging.getLogger(__name__)

EVERY_5_MINUTES = {0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}
EVERY_15_MINUTES = {0, 15, 30, 45}


async def promote_pending_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: move draft invoices inside their grace window to pending.

    Runs every 5 minutes.
    """
    db = SessionLocal()
    try:
        return InvoiceScheduler(db).promote_pending(datetime.now(UTC))
    finally:
        db.close()


async def finalize_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: finalize invoices whose grace period has elapsed.

    Runs every 5 minutes.
    """
    db = SessionLocal()
    try:
        count = InvoiceScheduler(db).finalize_due(datetime.now(UTC))
        if count > 0:
            logger.info("Finalized %d invoices", count)
        return count
    finally:
        db.close()


async def refresh_outdated_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: recompute line items of open invoices.

    Runs every 15 minutes.
    """
    db = SessionLocal()
    try:
        count = InvoiceScheduler(db).refresh_outdated(datetime.now(UTC))
        if count > 0:
            logger.info("Refreshed %d outdated invoices", count)
        return count
    finally:
        db.close()


async def issue_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: issue finalized invoices through their invoicing provider.

    Failed attempts are retried with exponential backoff until the attempt
    cap is reached. Runs every 5 minutes.
    """
    db = SessionLocal()
    try:
        issued, failed = InvoiceScheduler(db).issue_finalized(datetime.now(UTC))
        if issued > 0 or failed > 0:
            logger.info("Issued %d invoices, %d failed", issued, failed)
        return issued
    finally:
        db.close()


async def generate_renewal_invoices_task(ctx: dict[str, Any]) -> int:
    """Background task: create the draft invoice of every billing period that started.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        return SubscriptionService(db).generate_renewal_invoices(datetime.now(UTC))
    finally:
        db.close()


async def run_invoice_sweep_task(ctx: dict[str, Any]) -> dict[str, int]:
    """Run every lifecycle sweep once, in order."""
    db = SessionLocal()
    try:
        result = InvoiceScheduler(db).run(datetime.now(UTC))
        return {
            "promoted": result.promoted,
            "finalized": result.finalized,
            "refreshed": result.refreshed,
            "issued": result.issued,
            "issue_failed": result.issue_failed,
        }
    finally:
        db.close()


class WorkerSettings:
    functions = [
        promote_pending_invoices_task,
        finalize_invoices_task,
        refresh_outdated_invoices_task,
        issue_invoices_task,
        generate_renewal_invoices_task,
        run_invoice_sweep_task,
    ]
    cron_jobs = [
        cron(promote_pending_invoices_task, minute=EVERY_5_MINUTES),
        cron(finalize_invoices_task, minute=EVERY_5_MINUTES),
        cron(refresh_outdated_invoices_task, minute=EVERY_15_MINUTES),
        cron(issue_invoices_task, minute=EVERY_5_MINUTES),
        cron(generate_renewal_invoices_task, minute={0}),  # hourly
    ]
    redis_settings = redis_settings
