"""API tests over the ASGI app with a per-test SQLite database."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tollgate.api import deps
from tollgate.core.config import settings
from tollgate.core.shared_models import AccountRole, PlanType
from tollgate.main import app
from tests.helpers.payloads import razorpay_event, razorpay_payload, sign_razorpay, to_body


@pytest.fixture
async def client(session_factory, db, lifecycle):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_lifecycle] = lambda: lifecycle
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


def as_account(account_id) -> dict:
    return {"X-Account-ID": str(account_id)}


class TestPlans:
    async def test_catalog_lists_active_plans(self, client):
        response = await client.get("/plans")

        assert response.status_code == 200
        plan_types = {plan["plan_type"] for plan in response.json()}
        assert plan_types == {"free", "weekly", "monthly", "quarterly", "yearly"}

    async def test_unknown_plan(self, client):
        response = await client.get(f"/plans/{uuid.uuid4()}")
        assert response.status_code == 404


class TestCallerResolution:
    async def test_missing_header(self, client):
        response = await client.get("/subscriptions/current")
        assert response.status_code == 401

    async def test_malformed_header(self, client):
        response = await client.get("/subscriptions/current", headers={"X-Account-ID": "nope"})
        assert response.status_code == 401

    async def test_unknown_account(self, client):
        response = await client.get("/subscriptions/current", headers=as_account(uuid.uuid4()))
        assert response.status_code == 404

    async def test_employee_sees_the_admins_subscription(
        self, client, admin, make_account, make_employee
    ):
        worker = await make_account(role=AccountRole.EMPLOYEE)
        await make_employee(admin.id, account_id=worker.id)
        started = await client.post("/subscriptions/free-trial", headers=as_account(admin.id))

        response = await client.get("/subscriptions/current", headers=as_account(worker.id))

        assert started.status_code == 201
        assert response.status_code == 200
        assert response.json()["id"] == started.json()["id"]
        assert response.json()["tenant_id"] == str(admin.id)


class TestSubscriptions:
    async def test_free_trial_lifecycle(self, client, admin):
        headers = as_account(admin.id)

        created = await client.post("/subscriptions/free-trial", headers=headers)
        again = await client.post("/subscriptions/free-trial", headers=headers)
        assert created.status_code == 201
        assert again.json()["id"] == created.json()["id"]
        assert created.json()["status"] == "trialing"
        assert created.json()["is_trialing"] is True

        subscription_id = created.json()["id"]
        canceled = await client.post(f"/subscriptions/{subscription_id}/cancel", headers=headers)
        repeat = await client.post(f"/subscriptions/{subscription_id}/cancel", headers=headers)
        current = await client.get("/subscriptions/current", headers=headers)
        history = await client.get("/subscriptions/history", headers=headers)

        assert canceled.status_code == 200
        assert canceled.json()["status"] == "canceled"
        assert repeat.status_code == 400
        assert current.json() is None
        assert len(history.json()) == 1

    async def test_free_trial_conflicts_with_paid_plan(self, client, db, admin, plans, lifecycle):
        await lifecycle.apply_payment_event(
            db, razorpay_event(tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id)
        )

        response = await client.post("/subscriptions/free-trial", headers=as_account(admin.id))

        assert response.status_code == 409

    async def test_cancel_other_tenants_subscription(self, client, admin, make_account):
        created = await client.post("/subscriptions/free-trial", headers=as_account(admin.id))
        other = await make_account()

        response = await client.post(
            f"/subscriptions/{created.json()['id']}/cancel", headers=as_account(other.id)
        )

        assert response.status_code == 404

    async def test_stats_are_admin_only(self, client, admin, make_account, make_employee):
        worker = await make_account(role=AccountRole.EMPLOYEE)
        await make_employee(admin.id, account_id=worker.id)
        await client.post("/subscriptions/free-trial", headers=as_account(admin.id))

        as_admin = await client.get("/subscriptions/stats", headers=as_account(admin.id))
        as_worker = await client.get("/subscriptions/stats", headers=as_account(worker.id))

        assert as_admin.status_code == 200
        assert as_admin.json()["by_status"] == {"trialing": 1}
        assert as_worker.status_code == 403


class TestTrialLimits:
    async def test_sixth_employee_is_refused(self, client, admin):
        headers = as_account(admin.id)
        await client.post("/subscriptions/free-trial", headers=headers)

        for n in range(5):
            response = await client.post(
                "/employees",
                headers=headers,
                json={"name": f"Worker {n}", "email": f"worker{n}@example.com"},
            )
            assert response.status_code == 201

        refused = await client.post(
            "/employees", headers=headers, json={"name": "Sixth", "email": "six@example.com"}
        )
        status = await client.get("/subscriptions/trial-status", headers=headers)

        assert refused.status_code == 403
        assert refused.json()["resource_kind"] == "employees"
        assert refused.json()["limit"] == 5
        assert refused.json()["current"] == 5
        assert refused.json()["upgrade_required"] is True
        assert status.json()["limits"]["employees"]["reached"] is True

        employees = await client.get("/employees", headers=headers)
        deleted = await client.delete(f"/employees/{employees.json()[0]['id']}", headers=headers)
        accepted = await client.post(
            "/employees", headers=headers, json={"name": "Sixth", "email": "six@example.com"}
        )
        assert deleted.status_code == 200
        assert accepted.status_code == 201

    async def test_invalid_body_is_422(self, client, admin):
        response = await client.post(
            "/visitors", headers=as_account(admin.id), json={"name": ""}
        )
        assert response.status_code == 422


class TestReports:
    async def test_trial_tenant_needs_upgrade(self, client, admin):
        headers = as_account(admin.id)
        await client.post("/subscriptions/free-trial", headers=headers)

        response = await client.get("/reports/premium", headers=headers)

        assert response.status_code == 403
        assert response.json()["upgrade_required"] is True

    async def test_paid_tenant_gets_reports(self, client, db, admin, plans, lifecycle):
        await lifecycle.apply_payment_event(
            db, razorpay_event(tenant_id=admin.id, plan_id=plans[PlanType.YEARLY].id)
        )
        headers = as_account(admin.id)

        premium = await client.get("/reports/premium", headers=headers)
        yearly = await client.get("/reports/plan/yearly", headers=headers)
        monthly = await client.get("/reports/plan/monthly", headers=headers)

        assert premium.status_code == 200
        assert premium.json()["plan_type"] == "yearly"
        assert yearly.status_code == 200
        assert monthly.status_code == 403


class TestRazorpayWebhook:
    @pytest.fixture(autouse=True)
    def enable_razorpay(self, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_ENABLED", True)

    async def post(self, client, payload, signature=None):
        body = to_body(payload)
        return await client.post(
            "/webhooks/razorpay",
            content=body,
            headers={
                "Content-Type": "application/json",
                "x-razorpay-signature": signature or sign_razorpay(body),
            },
        )

    async def test_processed_then_deduplicated(self, client, admin, plans):
        payload = razorpay_payload(
            "order.paid", tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id
        )

        first = await self.post(client, payload)
        second = await self.post(client, payload)
        current = await client.get("/subscriptions/current", headers=as_account(admin.id))

        assert first.status_code == 200
        assert first.json()["outcome"] == "processed"
        assert second.status_code == 200
        assert second.json()["outcome"] == "deduplicated"
        assert current.json()["plan_type"] == "monthly"

    async def test_bad_signature(self, client, admin, plans):
        payload = razorpay_payload(
            "order.paid", tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id
        )
        response = await self.post(client, payload, signature="0" * 64)
        assert response.status_code == 401

    async def test_unattributable(self, client, plans):
        payload = razorpay_payload("order.paid", tenant_id=None, plan_id=plans[PlanType.MONTHLY].id)
        response = await self.post(client, payload)
        assert response.status_code == 400

    async def test_badly_typed_field_is_400(self, client, admin, plans):
        payload = razorpay_payload(
            "payment.captured", tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id
        )
        payload["payload"]["payment"]["entity"]["amount"] = "abc"

        response = await self.post(client, payload)

        assert response.status_code == 400

    async def test_unknown_plan_is_acknowledged(self, client, admin):
        payload = razorpay_payload("order.paid", tenant_id=admin.id, plan_id=uuid.uuid4())
        response = await self.post(client, payload)
        assert response.status_code == 200
        assert response.json()["outcome"] == "dropped"

    async def test_transient_failure_asks_for_retry(self, client, admin, plans):
        broken = MagicMock()
        broken.apply_payment_event = AsyncMock(side_effect=RuntimeError("database is locked"))
        app.dependency_overrides[deps.get_lifecycle] = lambda: broken
        payload = razorpay_payload(
            "order.paid", tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id
        )

        response = await self.post(client, payload)

        assert response.status_code == 503
        assert response.json()["outcome"] == "failed"

    async def test_disabled_provider_is_ignored(self, client, monkeypatch, admin, plans):
        monkeypatch.setattr(settings, "RAZORPAY_ENABLED", False)
        payload = razorpay_payload(
            "order.paid", tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id
        )

        response = await self.post(client, payload)

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"
