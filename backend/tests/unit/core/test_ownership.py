"""Unit tests for tenant ownership resolution."""

import uuid

import pytest

from tollgate import crud
from tollgate.core.exceptions import TenantNotFoundException
from tollgate.core.ownership_service import OwnershipResolver
from tollgate.core.shared_models import AccountRole


@pytest.fixture
def resolver():
    return OwnershipResolver()


class TestResolveTenant:
    async def test_admin_owns_itself(self, db, admin, resolver):
        assert await resolver.resolve_tenant_id(db, admin.id) == admin.id

    async def test_linked_employee_resolves_to_creator(
        self, db, admin, make_account, make_employee, resolver
    ):
        worker = await make_account(role=AccountRole.EMPLOYEE)
        await make_employee(admin.id, account_id=worker.id)

        assert await resolver.resolve_tenant_id(db, worker.id) == admin.id

    async def test_email_match_is_case_insensitive(
        self, db, admin, make_account, make_employee, resolver
    ):
        worker = await make_account(role=AccountRole.EMPLOYEE, email="desk@example.com")
        await make_employee(admin.id, email="Desk@Example.COM")

        assert await resolver.resolve_tenant_id(db, worker.id) == admin.id

    async def test_link_wins_over_email(self, db, make_account, make_employee, resolver):
        first_admin = await make_account()
        second_admin = await make_account()
        worker = await make_account(role=AccountRole.EMPLOYEE, email="shared@example.com")
        await make_employee(first_admin.id, email="shared@example.com")
        await make_employee(second_admin.id, account_id=worker.id)

        assert await resolver.resolve_tenant_id(db, worker.id) == second_admin.id

    async def test_deleted_worker_record_is_rejected(
        self, db, admin, make_account, make_employee, resolver
    ):
        worker = await make_account(role=AccountRole.EMPLOYEE)
        record = await make_employee(admin.id, account_id=worker.id)
        await crud.employee.soft_delete(db, id=record.id, tenant_id=admin.id)

        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, worker.id)

    async def test_inactive_worker_record_is_rejected(
        self, db, admin, make_account, make_employee, resolver
    ):
        worker = await make_account(role=AccountRole.EMPLOYEE, email="off@example.com")
        await make_employee(admin.id, email="off@example.com", is_active=False)

        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, worker.id)

    async def test_employee_without_record_is_rejected(self, db, make_account, resolver):
        worker = await make_account(role=AccountRole.EMPLOYEE)

        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, worker.id)

    async def test_inactive_creator_is_rejected(
        self, db, make_account, make_employee, resolver
    ):
        owner = await make_account(is_active=False)
        worker = await make_account(role=AccountRole.EMPLOYEE)
        await make_employee(owner.id, account_id=worker.id)

        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, worker.id)

    async def test_unknown_or_inactive_account(self, db, make_account, resolver):
        inactive = await make_account(is_active=False)

        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, uuid.uuid4())
        with pytest.raises(TenantNotFoundException):
            await resolver.resolve_tenant_id(db, inactive.id)
