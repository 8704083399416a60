"""Unit of work for explicit transaction control."""

from types import TracebackType
from typing import Optional, Type

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.exceptions import StoreUnavailableError


class UnitOfWork:
    """Wraps a session so a block of CRUD calls commits or rolls back as one.

    CRUD methods called with ``uow=`` skip their own commit; the commit happens
    when the block exits without an exception.

    Example:
    -------
        async with UnitOfWork(db) as uow:
            await crud.subscription.supersede_live(db, tenant_id=tenant_id, uow=uow)
            await crud.subscription.create(db, obj_in=new_sub, uow=uow)

    """

    def __init__(self, session: AsyncSession):
        """Create a unit of work on an existing session."""
        self.session = session
        self.committed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        if exc_type is not None:
            await self.rollback()
            return
        await self.commit()

    async def commit(self) -> None:
        """Commit the session."""
        try:
            await self.session.commit()
        except DBAPIError as e:
            await self.session.rollback()
            if e.connection_invalidated:
                raise StoreUnavailableError(f"Commit failed, connection lost: {e}") from e
            raise
        self.committed = True

    async def rollback(self) -> None:
        """Roll back the session."""
        await self.session.rollback()
