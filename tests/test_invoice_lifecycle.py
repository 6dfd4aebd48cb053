"""Tests for InvoiceLifecycleService transitions, recompute and issuance."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from billing_engine.core.exceptions import IssuanceError
from billing_engine.models.invoice import (
    InvoiceExternalStatus,
    InvoiceStatus,
    InvoiceType,
    InvoicingProvider,
)
from billing_engine.repositories.invoice_repository import InvoiceRepository
from billing_engine.repositories.slot_transaction_repository import SlotTransactionRepository
from billing_engine.services.invoice_lifecycle import InvoiceLifecycleService
from billing_engine.services.invoicing_provider import InvoicingProviderBase, IssueResult
from billing_engine.services.slot_ledger import SlotLedgerService
from tests.conftest import DEFAULT_TENANT_ID
from tests.factories import create_seat_plan, seat_component_id, subscribe

JAN_1 = datetime(2023, 1, 1, tzinfo=UTC)


@pytest.fixture
def plan(db_session):
    return create_seat_plan(db_session, monthly_rate="1000", platform_fee="500")


@pytest.fixture
def subscription(db_session, plan):
    return subscribe(db_session, plan, seats=15)


@pytest.fixture
def service(db_session):
    return InvoiceLifecycleService(db_session)


def _period_invoice(db_session, subscription):
    return InvoiceRepository(db_session).get_by_subscription(
        subscription.id, InvoiceType.SUBSCRIPTION
    )[0]


def _provider(side_effect=None):
    provider = MagicMock(spec=InvoicingProviderBase)
    provider.provider_name = InvoicingProvider.HTTP
    if side_effect is not None:
        provider.issue.side_effect = side_effect
    else:
        provider.issue.return_value = IssueResult(external_id="ext-1")
    return provider


class TestTransitions:
    def test_finalize_once(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        assert service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1) is True
        assert service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1) is False

    def test_void_then_finalize_is_noop(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        assert service.void(invoice.id, DEFAULT_TENANT_ID, JAN_1) is True
        assert service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1) is False

        db_session.expire_all()
        assert _period_invoice(db_session, subscription).status == InvoiceStatus.VOID.value

    def test_promote_pending(self, db_session, service, subscription):
        assert service.promote_pending(JAN_1 + timedelta(hours=1)) == 1
        assert service.promote_pending(JAN_1 + timedelta(hours=2)) == 0
        assert _period_invoice(db_session, subscription).status == InvoiceStatus.PENDING.value


class TestRecompute:
    def test_initial_invoice_lines(self, db_session, subscription):
        invoice = _period_invoice(db_session, subscription)
        assert invoice.total_cents == Decimal("15500")
        quantities = {line["name"]: line["quantity"] for line in invoice.line_items}
        assert quantities == {"Seats": 15, "Platform fee": 1}

    def test_recompute_reads_current_ledger(self, db_session, service, subscription, plan):
        SlotTransactionRepository(db_session).append(
            subscription.id,
            seat_component_id(plan),
            delta=-2,
            effective_at=JAN_1,
            transaction_at=JAN_1 - timedelta(days=3),
            resulting_slots=13,
        )
        db_session.commit()

        invoice = _period_invoice(db_session, subscription)
        now = JAN_1 + timedelta(hours=2)
        assert service.recompute(invoice, now) is True

        db_session.expire_all()
        invoice = _period_invoice(db_session, subscription)
        assert invoice.total_cents == Decimal("13500")
        assert invoice.data_updated_at is not None

    def test_recompute_is_idempotent(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        service.recompute(invoice, JAN_1 + timedelta(hours=1))
        db_session.expire_all()
        first = _period_invoice(db_session, subscription).line_items

        invoice = _period_invoice(db_session, subscription)
        service.recompute(invoice, JAN_1 + timedelta(hours=3))
        db_session.expire_all()
        assert _period_invoice(db_session, subscription).line_items == first

    def test_recompute_skips_finalized(self, db_session, service, subscription, plan):
        invoice = _period_invoice(db_session, subscription)
        service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1)
        SlotTransactionRepository(db_session).append(
            subscription.id,
            seat_component_id(plan),
            delta=2,
            effective_at=JAN_1,
            transaction_at=JAN_1,
            resulting_slots=17,
        )
        db_session.commit()

        invoice = _period_invoice(db_session, subscription)
        assert service.recompute(invoice, JAN_1 + timedelta(hours=2)) is False
        assert _period_invoice(db_session, subscription).total_cents == Decimal("15500")

    def test_recompute_keeps_adjustment_lines(self, db_session, service, subscription, plan):
        at = datetime(2023, 1, 15, 12, tzinfo=UTC)
        SlotLedgerService(db_session).apply_delta(
            DEFAULT_TENANT_ID, subscription.id, seat_component_id(plan), 5, at
        )
        adjustment = InvoiceRepository(db_session).get_by_subscription(
            subscription.id, InvoiceType.ADJUSTMENT
        )[0]
        lines = adjustment.line_items

        assert service.recompute(adjustment, at + timedelta(hours=1)) is True
        db_session.expire_all()
        adjustment = InvoiceRepository(db_session).get_by_id(adjustment.id)
        assert adjustment.line_items == lines
        assert adjustment.data_updated_at is not None


    def test_increase_at_period_start_billed_once(self, db_session, service, subscription, plan):
        SlotLedgerService(db_session).apply_delta(
            DEFAULT_TENANT_ID, subscription.id, seat_component_id(plan), 5, JAN_1
        )
        invoice = _period_invoice(db_session, subscription)
        assert service.recompute(invoice, JAN_1 + timedelta(hours=2)) is True

        db_session.expire_all()
        repo = InvoiceRepository(db_session)
        period_seats = next(
            line
            for line in _period_invoice(db_session, subscription).line_items
            if line["name"] == "Seats"
        )
        (adjustment,) = repo.get_by_subscription(subscription.id, InvoiceType.ADJUSTMENT)
        (adjustment_seats,) = adjustment.line_items

        assert period_seats["quantity"] == 15
        assert adjustment_seats["quantity"] == 5
        assert adjustment_seats["period"] == {"from": "2023-01-01", "to": "2023-02-01"}
        assert Decimal(adjustment_seats["total"]) == Decimal("5000")

    def test_increase_before_period_start_counts_in_next_period(
        self, db_session, service, subscription, plan
    ):
        SlotTransactionRepository(db_session).append(
            subscription.id,
            seat_component_id(plan),
            delta=3,
            effective_at=JAN_1 - timedelta(minutes=1),
            transaction_at=JAN_1 - timedelta(minutes=1),
            resulting_slots=18,
        )
        db_session.commit()

        invoice = _period_invoice(db_session, subscription)
        service.recompute(invoice, JAN_1 + timedelta(hours=2))
        db_session.expire_all()
        assert _period_invoice(db_session, subscription).total_cents == Decimal("18500")

class TestIssue:
    def test_issue_success(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1)
        invoice = _period_invoice(db_session, subscription)

        provider = _provider()
        assert service.issue(invoice, provider, JAN_1) is True
        provider.issue.assert_called_once()

        db_session.expire_all()
        invoice = _period_invoice(db_session, subscription)
        assert invoice.issued is True
        assert invoice.external_status == InvoiceExternalStatus.ISSUED.value
        assert invoice.issue_attempts == 1

    def test_issue_failure_recorded(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        service.finalize(invoice.id, DEFAULT_TENANT_ID, JAN_1)
        invoice = _period_invoice(db_session, subscription)

        provider = _provider(side_effect=IssuanceError("provider down"))
        assert service.issue(invoice, provider, JAN_1) is False

        db_session.expire_all()
        invoice = _period_invoice(db_session, subscription)
        assert invoice.issued is False
        assert invoice.external_status == InvoiceExternalStatus.ERROR.value
        assert invoice.issue_attempts == 1
        assert invoice.last_issue_error == "provider down"

    def test_issue_draft_is_noop(self, db_session, service, subscription):
        invoice = _period_invoice(db_session, subscription)
        provider = _provider()
        assert service.issue(invoice, provider, JAN_1) is False
        provider.issue.assert_not_called()

        db_session.expire_all()
        assert _period_invoice(db_session, subscription).issued is False
