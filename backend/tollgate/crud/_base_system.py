"""Base CRUD class for system tables."""

from typing import Any, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.db.unit_of_work import UnitOfWork
from tollgate.models._base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)


class CRUDBaseSystem(Generic[ModelType, CreateSchemaType]):
    """CRUD base class for system tables.

    Implements CRUD methods without tenant scoping. Used for accounts, plans
    and subscriptions, which the engine addresses by explicit keys.
    """

    def __init__(self, model: Type[ModelType]):
        """CRUD object with default methods for system tables.

        Args:
        ----
            model (Type[ModelType]): The model to be used in the CRUD operations.

        """
        self.model = model

    async def get(self, db: AsyncSession, id: UUID) -> Optional[ModelType]:
        """Get a single object by ID.

        Args:
        ----
            db (AsyncSession): The database session.
            id (UUID): The UUID of the object to get.

        Returns:
        -------
            Optional[ModelType]: The object with the given ID.

        """
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, dict[str, Any]],
        uow: Optional[UnitOfWork] = None,
    ) -> ModelType:
        """Create a new object.

        Args:
        ----
            db (AsyncSession): The database session.
            obj_in (CreateSchemaType): The object to create.
            uow (UnitOfWork, optional): Unit of work for transaction control.
                If not provided, auto-commits the transaction.

        Returns:
        -------
            ModelType: The created object.

        """
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump()
        db_obj = self.model(**obj_in)
        db.add(db_obj)

        if uow is None:
            await db.commit()
        else:
            await db.flush()

        return db_obj

