"""Per-tenant mutual exclusion for subscription mutations.

Only subscriptions of the same tenant are serialized against each other.
The in-process lock covers concurrent requests on one worker; the
orchestrator additionally takes a PostgreSQL transaction-level advisory lock
so that separate worker processes serialize on the same key.
"""

import asyncio
import hashlib
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class TenantLockRegistry:
    """Registry of asyncio locks keyed by tenant id."""

    def __init__(self) -> None:
        """Initialize the registry."""
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, tenant_id: UUID | str) -> asyncio.Lock:
        """Return the lock for a tenant, creating it on first use."""
        key = str(tenant_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, tenant_id: UUID | str) -> AsyncIterator[None]:
        """Hold the tenant's lock for the duration of the block."""
        lock = self.get(tenant_id)
        async with lock:
            yield


def advisory_lock_key(tenant_id: UUID | str) -> int:
    """Map a tenant id to a signed 64-bit advisory lock key."""
    digest = hashlib.sha256(str(tenant_id).encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


async def acquire_advisory_lock(db: AsyncSession, tenant_id: UUID | str) -> None:
    """Take a transaction-scoped advisory lock on PostgreSQL; no-op elsewhere."""
    if db.bind is None or db.bind.dialect.name != "postgresql":
        return
    await db.execute(
        text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_lock_key(tenant_id)}
    )


tenant_locks = TenantLockRegistry()
