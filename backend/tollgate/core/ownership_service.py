"""Resolve callers to the tenant that owns their data and billing."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud
from tollgate.core.exceptions import TenantNotFoundException
from tollgate.core.logging import logger
from tollgate.core.shared_models import AccountRole
from tollgate.models import Account, Employee


class OwnershipResolver:
    """Maps an account id to its canonical tenant id.

    Admins own themselves. Employees resolve to the admin who created their
    worker record; the link field is tried before the email match.
    """

    async def resolve_tenant_id(self, db: AsyncSession, account_id: UUID) -> UUID:
        """Return the tenant id for ``account_id``.

        Raises:
        ------
            TenantNotFoundException: If the caller is neither an active admin nor
                linked to an active worker record of an active admin.

        """
        account = await crud.account.get(db, account_id)
        if account is None or account.is_deleted or not account.is_active:
            raise TenantNotFoundException(str(account_id))

        if account.role == AccountRole.ADMIN.value:
            return account.id

        worker = await self._find_worker(db, account)
        tenant_id = worker.tenant_id

        owner = await crud.account.get(db, tenant_id)
        if not _is_active_admin(owner):
            logger.with_context(account_id=str(account_id), tenant_id=str(tenant_id)).warning(
                "Worker record points at a missing or inactive admin"
            )
            raise TenantNotFoundException(str(account_id))

        return tenant_id

    async def _find_worker(self, db: AsyncSession, account: Account) -> Employee:
        linked = await crud.employee.get_by_account_id(db, account_id=account.id)
        if linked is not None:
            if linked.is_deleted or not linked.is_active:
                raise TenantNotFoundException(str(account.id))
            return linked

        by_email = await crud.employee.get_active_by_email(db, email=account.email)
        if by_email is None:
            raise TenantNotFoundException(str(account.id))
        return by_email


def _is_active_admin(account: Account | None) -> bool:
    return (
        account is not None
        and account.role == AccountRole.ADMIN.value
        and account.is_active
        and not account.is_deleted
    )


ownership_resolver = OwnershipResolver()
