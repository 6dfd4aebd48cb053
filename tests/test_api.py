"""API tests for billing-engine."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from billing_engine.core.config import settings
from billing_engine.main import app
from billing_engine.repositories.invoice_repository import InvoiceRepository
from tests.conftest import DEFAULT_TENANT_ID


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _plan_payload(**overrides):
    data = {
        "name": "Team",
        "billing_periods": ["monthly", "annual"],
        "components": [
            {
                "name": "Seats",
                "fee_type": "slot",
                "rates": {"monthly": "1000", "annual": "10000"},
                "minimum_slots": 1,
            },
            {
                "name": "Platform fee",
                "fee_type": "rate",
                "rates": {"monthly": "500", "annual": "5000"},
            },
        ],
    }
    data.update(overrides)
    return data


def _create_plan(client, headers=None):
    response = client.post("/v1/plans/", json=_plan_payload(), headers=headers or {})
    assert response.status_code == 201
    return response.json()


def _component_id(plan, fee_type):
    return next(c["id"] for c in plan["components"] if c["fee_type"] == fee_type)


def _create_subscription(client, plan, seats=5, **overrides):
    data = {
        "customer_id": str(uuid4()),
        "plan_id": plan["id"],
        "billing_period": "monthly",
        "billing_start_date": "2023-01-01",
        "billing_day": 1,
        "parameters": [{"component_id": _component_id(plan, "slot"), "value": seats}],
    }
    data.update(overrides)
    response = client.post("/v1/subscriptions/", json=data)
    assert response.status_code == 201, response.text
    return response.json()


def _invoices_for(client, subscription):
    response = client.get("/v1/invoices/", params={"subscription_id": subscription["id"]})
    assert response.status_code == 200
    return response.json()


class TestRoot:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {
            "app": settings.APP_NAME,
            "version": settings.version,
            "status": "running",
        }

    def test_cors_preflight(self, client: TestClient):
        response = client.options(
            "/v1/plans/",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestPlansAPI:
    def test_list_plans_empty(self, client: TestClient):
        response = client.get("/v1/plans/")
        assert response.status_code == 200
        assert response.json() == []
        assert response.headers["X-Total-Count"] == "0"

    def test_create_and_get_plan(self, client: TestClient):
        plan = _create_plan(client)
        assert plan["name"] == "Team"
        assert plan["tenant_id"] == str(DEFAULT_TENANT_ID)
        assert plan["billing_periods"] == ["monthly", "annual"]
        assert len(plan["components"]) == 2

        response = client.get(f"/v1/plans/{plan['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == plan["id"]

    def test_create_plan_missing_rate(self, client: TestClient):
        payload = _plan_payload(
            components=[{"name": "Support", "rates": {"monthly": "100"}}]
        )
        response = client.post("/v1/plans/", json=payload)
        assert response.status_code == 400
        assert "annual" in response.json()["detail"]

    def test_create_plan_without_periods(self, client: TestClient):
        response = client.post("/v1/plans/", json=_plan_payload(billing_periods=[]))
        assert response.status_code == 422

    def test_get_plan_not_found(self, client: TestClient):
        response = client.get(f"/v1/plans/{uuid4()}")
        assert response.status_code == 404

    def test_plans_are_tenant_scoped(self, client: TestClient):
        plan = _create_plan(client)
        other = {"X-Tenant-Id": str(uuid4())}

        assert client.get(f"/v1/plans/{plan['id']}", headers=other).status_code == 404
        assert client.get("/v1/plans/", headers=other).json() == []

    def test_invalid_tenant_header(self, client: TestClient):
        response = client.get("/v1/plans/", headers={"X-Tenant-Id": "not-a-uuid"})
        assert response.status_code == 400


class TestSubscriptionsAPI:
    def test_create_subscription(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)

        assert subscription["status"] == "active"
        assert subscription["billing_end_date"] is None
        seats = next(c for c in subscription["components"] if c["fee_type"] == "slot")
        assert seats["committed_quantity"] == 5

        (invoice,) = _invoices_for(client, subscription)
        assert invoice["status"] == "draft"
        assert invoice["invoice_type"] == "subscription"
        assert invoice["billing_period_start"] == "2023-01-01"
        assert invoice["billing_period_end"] == "2023-02-01"

    def test_create_subscription_invalid_period(self, client: TestClient):
        plan = _create_plan(client)
        response = client.post(
            "/v1/subscriptions/",
            json={
                "customer_id": str(uuid4()),
                "plan_id": plan["id"],
                "billing_period": "quarterly",
                "billing_start_date": "2023-01-01",
                "billing_day": 1,
                "parameters": [{"component_id": _component_id(plan, "slot"), "value": 1}],
            },
        )
        assert response.status_code == 400
        assert "Invalid billing period" in response.json()["detail"]

    def test_create_subscription_below_minimum(self, client: TestClient):
        plan = _create_plan(client)
        response = client.post(
            "/v1/subscriptions/",
            json={
                "customer_id": str(uuid4()),
                "plan_id": plan["id"],
                "billing_period": "monthly",
                "billing_start_date": "2023-01-01",
                "billing_day": 1,
                "parameters": [{"component_id": _component_id(plan, "slot"), "value": 0}],
            },
        )
        assert response.status_code == 400

    def test_create_subscription_invalid_billing_day(self, client: TestClient):
        plan = _create_plan(client)
        response = client.post(
            "/v1/subscriptions/",
            json={
                "customer_id": str(uuid4()),
                "plan_id": plan["id"],
                "billing_period": "monthly",
                "billing_start_date": "2023-01-01",
                "billing_day": 32,
            },
        )
        assert response.status_code == 422

    def test_list_subscriptions_by_customer(self, client: TestClient):
        plan = _create_plan(client)
        first = _create_subscription(client, plan)
        _create_subscription(client, plan)

        response = client.get("/v1/subscriptions/", params={"customer_id": first["customer_id"]})
        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [first["id"]]
        assert response.headers["X-Total-Count"] == "2"

    def test_get_subscription_not_found(self, client: TestClient):
        assert client.get(f"/v1/subscriptions/{uuid4()}").status_code == 404

    def test_cancel_at_period_end(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)

        response = client.post(f"/v1/subscriptions/{subscription['id']}/cancel")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "active"
        assert data["canceled_at"] is not None
        assert data["billing_end_date"] is not None

        again = client.post(f"/v1/subscriptions/{subscription['id']}/cancel")
        assert again.status_code == 400

    def test_cancel_immediately(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/cancel",
            json={"effective_at": "immediate", "reason": "closing account"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "canceled"
        assert response.json()["cancellation_reason"] == "closing account"

        (invoice,) = _invoices_for(client, subscription)
        assert invoice["status"] == "void"

    def test_cancel_not_found(self, client: TestClient):
        assert client.post(f"/v1/subscriptions/{uuid4()}/cancel").status_code == 404


class TestSlotsAPI:
    def test_increase_is_immediate(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan, seats=5)
        seats_id = _component_id(plan, "slot")

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": seats_id, "delta": 2},
        )
        assert response.status_code == 200
        assert response.json()["active_slots"] == 7

        response = client.get(f"/v1/subscriptions/{subscription['id']}/slots/{seats_id}")
        assert response.status_code == 200
        assert response.json()["active_slots"] == 7

        adjustments = [
            i for i in _invoices_for(client, subscription) if i["invoice_type"] == "adjustment"
        ]
        assert len(adjustments) == 1
        assert adjustments[0]["line_items"][0]["quantity"] == 2

    def test_decrease_is_deferred(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan, seats=5)
        seats_id = _component_id(plan, "slot")

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": seats_id, "delta": -2},
        )
        assert response.status_code == 200
        assert response.json()["active_slots"] == 5

    def test_active_slots_at_past_instant(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan, seats=5)
        seats_id = _component_id(plan, "slot")
        client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": seats_id, "delta": 3},
        )

        response = client.get(
            f"/v1/subscriptions/{subscription['id']}/slots/{seats_id}",
            params={"at": "2023-01-15T00:00:00+00:00"},
        )
        assert response.status_code == 200
        assert response.json()["active_slots"] == 5

    def test_decrease_below_minimum_rejected(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan, seats=2)
        seats_id = _component_id(plan, "slot")

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": seats_id, "delta": -2},
        )
        assert response.status_code == 400

    def test_rate_component_rejected(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": _component_id(plan, "rate"), "delta": 1},
        )
        assert response.status_code == 400

    def test_zero_delta_rejected(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)

        response = client.post(
            f"/v1/subscriptions/{subscription['id']}/slots",
            json={"price_component_id": _component_id(plan, "slot"), "delta": 0},
        )
        assert response.status_code == 400

    def test_unknown_subscription(self, client: TestClient):
        response = client.post(
            f"/v1/subscriptions/{uuid4()}/slots",
            json={"price_component_id": str(uuid4()), "delta": 1},
        )
        assert response.status_code == 404


class TestInvoicesAPI:
    def test_list_invoices_empty(self, client: TestClient):
        response = client.get("/v1/invoices/")
        assert response.status_code == 200
        assert response.json() == []
        assert response.headers["X-Total-Count"] == "0"

    def test_get_invoice(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)
        (invoice,) = _invoices_for(client, subscription)

        response = client.get(f"/v1/invoices/{invoice['id']}")
        assert response.status_code == 200
        assert response.json()["invoice_number"] == invoice["invoice_number"]

    def test_get_invoice_not_found(self, client: TestClient):
        assert client.get(f"/v1/invoices/{uuid4()}").status_code == 404

    def test_filter_by_status(self, client: TestClient):
        plan = _create_plan(client)
        _create_subscription(client, plan)

        assert len(client.get("/v1/invoices/", params={"status": "draft"}).json()) == 1
        assert client.get("/v1/invoices/", params={"status": "void"}).json() == []

    def test_finalize_invoice(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)
        (invoice,) = _invoices_for(client, subscription)

        response = client.post(f"/v1/invoices/{invoice['id']}/finalize")
        assert response.status_code == 200
        assert response.json()["status"] == "finalized"
        assert response.json()["finalized_at"] is not None

        assert client.post(f"/v1/invoices/{invoice['id']}/finalize").status_code == 400
        assert client.post(f"/v1/invoices/{invoice['id']}/void").status_code == 400

    def test_void_invoice(self, client: TestClient):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan)
        (invoice,) = _invoices_for(client, subscription)

        response = client.post(f"/v1/invoices/{invoice['id']}/void")
        assert response.status_code == 200
        assert response.json()["status"] == "void"

        assert client.post(f"/v1/invoices/{invoice['id']}/finalize").status_code == 400

    def test_lifecycle_not_found(self, client: TestClient):
        assert client.post(f"/v1/invoices/{uuid4()}/finalize").status_code == 404
        assert client.post(f"/v1/invoices/{uuid4()}/void").status_code == 404

    def test_issue_failures(self, client: TestClient, db_session):
        plan = _create_plan(client)
        subscription = _create_subscription(client, plan, invoicing_provider="http")
        (invoice,) = _invoices_for(client, subscription)
        client.post(f"/v1/invoices/{invoice['id']}/finalize")

        assert client.get("/v1/invoices/issue_failures").json() == []

        repo = InvoiceRepository(db_session)
        now = datetime(2023, 1, 2, tzinfo=UTC)
        for _ in range(settings.INVOICE_ISSUE_MAX_ATTEMPTS):
            repo.issue_error(UUID(invoice["id"]), DEFAULT_TENANT_ID, "provider down", now)

        response = client.get("/v1/invoices/issue_failures")
        assert response.status_code == 200
        (failure,) = response.json()
        assert failure["id"] == invoice["id"]
        assert failure["external_status"] == "error"
        assert failure["last_issue_error"] == "provider down"


class TestInvoicingConfigAPI:
    def test_get_default_tenant_config(self, client: TestClient):
        response = client.get("/v1/invoicing_config/")
        assert response.status_code == 200
        assert response.json() == {
            "tenant_id": str(DEFAULT_TENANT_ID),
            "grace_period_hours": 24,
        }

    def test_get_creates_config_for_new_tenant(self, client: TestClient):
        tenant_id = str(uuid4())
        response = client.get("/v1/invoicing_config/", headers={"X-Tenant-Id": tenant_id})
        assert response.status_code == 200
        assert response.json()["grace_period_hours"] == settings.DEFAULT_GRACE_PERIOD_HOURS

    def test_update_config(self, client: TestClient):
        response = client.put("/v1/invoicing_config/", json={"grace_period_hours": 48})
        assert response.status_code == 200
        assert response.json()["grace_period_hours"] == 48

        assert client.get("/v1/invoicing_config/").json()["grace_period_hours"] == 48

    def test_update_config_rejects_negative(self, client: TestClient):
        response = client.put("/v1/invoicing_config/", json={"grace_period_hours": -1})
        assert response.status_code == 422
