"""CRUD operations for employees."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.crud._base_tenant import CRUDBaseTenant
from tollgate.models import Employee


class CRUDEmployee(CRUDBaseTenant[Employee, schemas.EmployeeCreate]):
    """CRUD operations for employees."""

    async def get_by_account_id(
        self, db: AsyncSession, *, account_id: UUID
    ) -> Optional[Employee]:
        """Get the worker record explicitly linked to a login account.

        Inactive and deleted records are returned too, so the caller can tell
        "no record" apart from "record disabled".
        """
        query = (
            select(Employee)
            .where(Employee.account_id == account_id)
            .order_by(Employee.is_deleted, Employee.is_active.desc(), Employee.created_at)
        )
        result = await db.execute(query)
        return result.scalars().first()

    async def get_active_by_email(self, db: AsyncSession, *, email: str) -> Optional[Employee]:
        """Get an active, non-deleted worker record by trimmed, case-insensitive email."""
        query = (
            select(Employee)
            .where(
                func.lower(Employee.email) == email.strip().lower(),
                Employee.is_active.is_(True),
                Employee.is_deleted.is_(False),
            )
            .order_by(Employee.created_at)
        )
        result = await db.execute(query)
        return result.scalars().first()


employee = CRUDEmployee(Employee)
