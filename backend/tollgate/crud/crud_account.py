"""CRUD operations for accounts."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.crud._base_system import CRUDBaseSystem
from tollgate.models import Account


class CRUDAccount(CRUDBaseSystem[Account, schemas.AccountCreate]):
    """CRUD operations for accounts."""

    async def get_by_email(self, db: AsyncSession, *, email: str) -> Optional[Account]:
        """Get an account by email, case-insensitively."""
        query = select(Account).where(func.lower(Account.email) == email.strip().lower())
        result = await db.execute(query)
        return result.scalar_one_or_none()


account = CRUDAccount(Account)
