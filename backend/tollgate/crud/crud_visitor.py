"""CRUD operations for visitors."""

from tollgate import schemas
from tollgate.crud._base_tenant import CRUDBaseTenant
from tollgate.models import Visitor


class CRUDVisitor(CRUDBaseTenant[Visitor, schemas.VisitorCreate]):
    """CRUD operations for visitors."""


visitor = CRUDVisitor(Visitor)
