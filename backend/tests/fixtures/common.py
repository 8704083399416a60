"""Common test fixtures.

Each test gets its own SQLite database file, so sessions opened from
``session_factory`` in concurrent tasks really do see each other's commits.

Factories return schema snapshots rather than ORM instances; a lost
idempotency claim rolls the session back and expires every loaded instance.
"""

import uuid
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from tollgate import crud, schemas
from tollgate.core.shared_models import AccountRole, PlanType
from tollgate.core.tenant_locks import TenantLockRegistry
from tollgate.db.init_db import create_tables, seed_plans
from tollgate.db.session import create_engine_for_url
from tollgate.platform.billing.idempotency import IdempotencyGate
from tollgate.platform.billing.lifecycle import SubscriptionLifecycleService


@pytest.fixture
async def db_engine(tmp_path):
    """Engine on a fresh SQLite file with the schema created."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'tollgate.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Session on a database with the default plan catalog."""
    async with session_factory() as session:
        await seed_plans(session)
        yield session


@pytest.fixture
async def plans(db):
    """Seeded plans keyed by plan type."""
    catalog = await crud.plan.get_catalog(db, active_only=False)
    return {
        PlanType(plan.plan_type): schemas.Plan.model_validate(plan, from_attributes=True)
        for plan in catalog
    }


@pytest.fixture
def make_account(db):
    """Factory for accounts."""

    async def _make(
        role: AccountRole = AccountRole.ADMIN,
        email: Optional[str] = None,
        is_active: bool = True,
    ) -> schemas.Account:
        account = await crud.account.create(
            db,
            obj_in=schemas.AccountCreate(
                email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
                full_name="Test User",
                role=role,
                is_active=is_active,
            ),
        )
        return schemas.Account.model_validate(account, from_attributes=True)

    return _make


@pytest.fixture
def make_employee(db):
    """Factory for worker records owned by a tenant."""

    async def _make(
        tenant_id: uuid.UUID,
        email: Optional[str] = None,
        account_id: Optional[uuid.UUID] = None,
        is_active: bool = True,
    ) -> schemas.Employee:
        employee = await crud.employee.create(
            db,
            obj_in={
                "name": "Front Desk",
                "email": email or f"worker-{uuid.uuid4().hex[:8]}@example.com",
                "account_id": account_id,
                "is_active": is_active,
            },
            tenant_id=tenant_id,
        )
        return schemas.Employee.model_validate(employee, from_attributes=True)

    return _make


@pytest.fixture
async def admin(make_account):
    """An active admin account, i.e. a tenant."""
    return await make_account()


@pytest.fixture
def mock_notifier():
    """Notifier whose calls can be counted."""
    return AsyncMock()


@pytest.fixture
def lifecycle(mock_notifier):
    """Lifecycle service with isolated locks and a mock notifier."""
    return SubscriptionLifecycleService(
        notifier=mock_notifier,
        locks=TenantLockRegistry(),
        gate=IdempotencyGate(),
    )
