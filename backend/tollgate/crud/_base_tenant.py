"""CRUD class for tenant-scoped, soft-deletable resources."""

from typing import Any, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.datetime_utils import utc_now_naive
from tollgate.core.exceptions import NotFoundException
from tollgate.db.unit_of_work import UnitOfWork
from tollgate.models._base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)


class CRUDBaseTenant(Generic[ModelType, CreateSchemaType]):
    """CRUD for resources owned by a tenant.

    Every query is filtered by the resolved tenant id, never by the caller's
    own account id. Soft-deleted rows are excluded from reads and counts.
    """

    def __init__(self, model: Type[ModelType]):
        """Initialize the CRUD object.

        Args:
        ----
            model (Type[ModelType]): The model to be used in the CRUD operations.

        """
        self.model = model

    def _live(self, tenant_id: UUID):
        return select(self.model).where(
            self.model.tenant_id == tenant_id,
            self.model.is_deleted.is_(False),
        )

    async def get(self, db: AsyncSession, *, id: UUID, tenant_id: UUID) -> ModelType:
        """Get a non-deleted resource of the tenant.

        Raises:
        ------
            NotFoundException: If the resource does not exist for this tenant.

        """
        result = await db.execute(self._live(tenant_id).where(self.model.id == id))
        db_obj = result.scalar_one_or_none()
        if db_obj is None:
            raise NotFoundException(f"{self.model.__name__} not found")
        return db_obj

    async def get_multi(
        self, db: AsyncSession, *, tenant_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[ModelType]:
        """Get non-deleted resources of the tenant."""
        query = self._live(tenant_id).order_by(self.model.created_at).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_active(self, db: AsyncSession, *, tenant_id: UUID) -> int:
        """Count non-deleted resources of the tenant."""
        query = select(func.count()).select_from(self.model).where(
            self.model.tenant_id == tenant_id,
            self.model.is_deleted.is_(False),
        )
        result = await db.execute(query)
        return int(result.scalar_one())

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, dict[str, Any]],
        tenant_id: UUID,
        uow: Optional[UnitOfWork] = None,
    ) -> ModelType:
        """Create a resource owned by the tenant."""
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump()
        db_obj = self.model(**obj_in, tenant_id=tenant_id)
        db.add(db_obj)

        if uow is None:
            await db.commit()
        else:
            await db.flush()

        return db_obj

    async def soft_delete(
        self, db: AsyncSession, *, id: UUID, tenant_id: UUID, uow: Optional[UnitOfWork] = None
    ) -> ModelType:
        """Mark a resource deleted; it stops counting against trial ceilings."""
        db_obj = await self.get(db, id=id, tenant_id=tenant_id)
        db_obj.is_deleted = True
        db_obj.deleted_at = utc_now_naive()
        db.add(db_obj)

        if uow is None:
            await db.commit()

        return db_obj

    async def restore(
        self, db: AsyncSession, *, id: UUID, tenant_id: UUID, uow: Optional[UnitOfWork] = None
    ) -> ModelType:
        """Restore a soft-deleted resource."""
        query = select(self.model).where(
            self.model.id == id,
            self.model.tenant_id == tenant_id,
            self.model.is_deleted.is_(True),
        )
        result = await db.execute(query)
        db_obj = result.scalar_one_or_none()
        if db_obj is None:
            raise NotFoundException(f"Deleted {self.model.__name__} not found")
        db_obj.is_deleted = False
        db_obj.deleted_at = None
        db.add(db_obj)

        if uow is None:
            await db.commit()

        return db_obj
