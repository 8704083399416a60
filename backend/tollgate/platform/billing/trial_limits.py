"""Trial limit counter and gate.

Usage is always counted from the database; nothing is cached between calls.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.core.exceptions import TrialLimitExceededException
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.core.shared_models import ResourceKind
from tollgate.core.tenant_locks import TenantLockRegistry, acquire_advisory_lock, tenant_locks
from tollgate.platform.billing.entitlements import is_trialing
from tollgate.platform.billing.plan_logic import TRIAL_LIMITS, UNLIMITED, trial_limit_for


class TrialLimitService:
    """Counts tenant resources and compares them with the trial ceilings."""

    COUNTERS = {
        ResourceKind.EMPLOYEES: crud.employee,
        ResourceKind.VISITORS: crud.visitor,
        ResourceKind.APPOINTMENTS: crud.appointment,
    }

    def __init__(
        self,
        logger: Optional[ContextualLogger] = None,
        locks: Optional[TenantLockRegistry] = None,
    ):
        """Initialize the service.

        Args:
            logger: Optional contextual logger for structured logging
            locks: Lock registry used to serialize check-then-create per tenant
        """
        self.logger = logger or default_logger.with_context(component="trial_limits")
        self.locks = locks or tenant_locks

    async def count_active(
        self, db: AsyncSession, tenant_id: UUID, resource_kind: ResourceKind
    ) -> int:
        """Count non-deleted resources of ``resource_kind`` for the tenant."""
        counter = self.COUNTERS[ResourceKind(resource_kind)]
        return await counter.count_active(db, tenant_id=tenant_id)

    async def check_limit(
        self, db: AsyncSession, tenant_id: UUID, resource_kind: ResourceKind
    ) -> schemas.TrialLimitDecision:
        """Decide whether one more resource may be created.

        Only a trialing subscription enforces a ceiling. A tenant with no
        subscription at all is allowed.
        """
        resource_kind = ResourceKind(resource_kind)
        subscription = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
        if subscription is None or not is_trialing(subscription):
            return schemas.Allow()

        limit = trial_limit_for(resource_kind)
        current = await self.count_active(db, tenant_id, resource_kind)
        if current >= limit:
            self.logger.with_context(
                tenant_id=str(tenant_id), resource_kind=resource_kind.value
            ).info(f"Trial limit reached: {current}/{limit}")
            return schemas.Deny(
                resource_kind=resource_kind,
                limit=limit,
                current=current,
                reason=f"Trial limit reached for {resource_kind.value}: {current}/{limit}",
            )
        return schemas.Allow()

    async def enforce(
        self, db: AsyncSession, tenant_id: UUID, resource_kind: ResourceKind
    ) -> None:
        """Raise TrialLimitExceededException if the ceiling is reached."""
        decision = await self.check_limit(db, tenant_id, resource_kind)
        if isinstance(decision, schemas.Deny):
            raise TrialLimitExceededException(
                resource_kind=decision.resource_kind.value,
                limit=decision.limit,
                current_usage=decision.current,
            )

    @asynccontextmanager
    async def guard_create(
        self, db: AsyncSession, tenant_id: UUID, resource_kind: ResourceKind
    ) -> AsyncIterator[None]:
        """Check the ceiling and keep the tenant locked while the caller creates the resource.

        Example:
        -------
            async with trial_limit_service.guard_create(db, tenant_id, ResourceKind.VISITORS):
                await crud.visitor.create(db, obj_in=visitor_in, tenant_id=tenant_id)

        """
        async with self.locks.hold(tenant_id):
            await acquire_advisory_lock(db, tenant_id)
            await self.enforce(db, tenant_id, resource_kind)
            yield

    async def get_trial_status(self, db: AsyncSession, tenant_id: UUID) -> schemas.TrialStatus:
        """Usage of every resource kind against its ceiling."""
        subscription = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
        trialing = is_trialing(subscription)

        limits = {}
        for kind in ResourceKind:
            current = await self.count_active(db, tenant_id, kind)
            if trialing:
                limit = TRIAL_LIMITS[kind.value]
                limits[kind] = schemas.TrialLimitUsage(
                    limit=limit, current=current, reached=current >= limit
                )
            else:
                limits[kind] = schemas.TrialLimitUsage(
                    limit=UNLIMITED, current=current, reached=False
                )

        return schemas.TrialStatus(is_trial=trialing, limits=limits)


trial_limit_service = TrialLimitService()
