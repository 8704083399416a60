"""CRUD operations for subscriptions."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.core.shared_models import LIVE_STATUSES, SubscriptionStatus
from tollgate.crud._base_system import CRUDBaseSystem
from tollgate.db.unit_of_work import UnitOfWork
from tollgate.models import Subscription

_LIVE_VALUES = [status.value for status in LIVE_STATUSES]


class CRUDSubscription(CRUDBaseSystem[Subscription, schemas.SubscriptionCreate]):
    """CRUD operations for subscriptions.

    Status changes go through ``transition``, a compare-and-set update, so a
    record that has left the live states is never brought back.
    """

    async def get_live_by_tenant(
        self, db: AsyncSession, *, tenant_id: UUID
    ) -> Optional[Subscription]:
        """Get the tenant's trialing, active or past_due subscription, if any."""
        query = select(Subscription).where(
            Subscription.tenant_id == tenant_id,
            Subscription.status.in_(_LIVE_VALUES),
        )
        result = await db.execute(query)
        return result.scalars().first()

    async def get_history(
        self, db: AsyncSession, *, tenant_id: UUID, limit: int = 50
    ) -> list[Subscription]:
        """Get all of a tenant's subscriptions, newest first."""
        query = (
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id)
            .order_by(Subscription.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_by_provider_payment(
        self,
        db: AsyncSession,
        *,
        provider: str,
        provider_order_id: str,
        provider_payment_id: str,
    ) -> Optional[Subscription]:
        """Get the subscription created for a given provider order and payment."""
        query = select(Subscription).where(
            Subscription.provider == provider,
            Subscription.provider_order_id == provider_order_id,
            Subscription.provider_payment_id == provider_payment_id,
        )
        result = await db.execute(query)
        return result.scalars().first()

    async def get_live_by_provider_reference(
        self, db: AsyncSession, *, tenant_id: UUID, provider: str, reference: str
    ) -> Optional[Subscription]:
        """Get the tenant's live subscription matching a provider order or subscription id."""
        query = select(Subscription).where(
            Subscription.tenant_id == tenant_id,
            Subscription.provider == provider,
            Subscription.status.in_(_LIVE_VALUES),
            (Subscription.provider_order_id == reference)
            | (Subscription.provider_subscription_id == reference),
        )
        result = await db.execute(query)
        return result.scalars().first()

    async def transition(
        self,
        db: AsyncSession,
        *,
        subscription_id: UUID,
        to_status: SubscriptionStatus,
        from_statuses: tuple[SubscriptionStatus, ...],
        values: Optional[dict] = None,
        now: Optional[datetime] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Move a subscription to ``to_status`` only if it is in one of ``from_statuses``.

        Args:
        ----
            db (AsyncSession): The database session.
            subscription_id (UUID): The subscription to transition.
            to_status (SubscriptionStatus): The target status.
            from_statuses (tuple): Statuses the row must currently be in.
            values (dict, optional): Extra columns to set with the transition.
            now (datetime, optional): When given, the row must also have
                ``end_date <= now`` (used by the expiry sweep).
            uow (UnitOfWork, optional): Unit of work for transaction control.

        Returns:
        -------
            bool: Whether the row was updated.

        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status.in_([status.value for status in from_statuses]),
            )
            .values(status=to_status.value, **(values or {}))
            .execution_options(synchronize_session="evaluate")
        )
        if now is not None:
            stmt = stmt.where(Subscription.end_date.is_not(None), Subscription.end_date <= now)

        result = await db.execute(stmt)

        if uow is None:
            await db.commit()

        return result.rowcount == 1

    async def supersede_live(
        self,
        db: AsyncSession,
        *,
        tenant_id: UUID,
        canceled_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> int:
        """Cancel every live subscription of the tenant. Returns the number of rows changed."""
        stmt = (
            update(Subscription)
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.status.in_(_LIVE_VALUES),
            )
            .values(
                status=SubscriptionStatus.CANCELED.value,
                is_auto_renew=False,
                canceled_at=canceled_at,
            )
            .execution_options(synchronize_session="evaluate")
        )
        result = await db.execute(stmt)

        if uow is None:
            await db.commit()

        return result.rowcount

    async def get_due_for_expiry(
        self, db: AsyncSession, *, now: datetime, limit: int = 500
    ) -> list[tuple[UUID, UUID]]:
        """Get (id, tenant_id) of live subscriptions whose end date has passed."""
        query = (
            select(Subscription.id, Subscription.tenant_id)
            .where(
                Subscription.status.in_(_LIVE_VALUES),
                Subscription.end_date.is_not(None),
                Subscription.end_date <= now,
            )
            .order_by(Subscription.end_date)
            .limit(limit)
        )
        result = await db.execute(query)
        return [(row.id, row.tenant_id) for row in result.all()]

    async def get_stats(self, db: AsyncSession) -> schemas.SubscriptionStats:
        """Aggregate counts by status and plan type, and paid revenue per currency."""
        by_status_rows = await db.execute(
            select(Subscription.status, func.count()).group_by(Subscription.status)
        )
        by_status = {status: count for status, count in by_status_rows.all()}

        by_plan_rows = await db.execute(
            select(Subscription.plan_type, func.count()).group_by(Subscription.plan_type)
        )
        by_plan_type = {plan_type: count for plan_type, count in by_plan_rows.all()}

        revenue_rows = await db.execute(
            select(Subscription.currency, func.sum(Subscription.amount))
            .where(Subscription.provider.is_not(None), Subscription.amount > 0)
            .group_by(Subscription.currency)
        )
        paid_revenue = {
            currency: Decimal(str(total or 0)) for currency, total in revenue_rows.all()
        }

        return schemas.SubscriptionStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_plan_type=by_plan_type,
            paid_revenue=paid_revenue,
        )


subscription = CRUDSubscription(Subscription)
