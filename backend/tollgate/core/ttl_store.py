"""Short-lived key/value state with an explicit time to live.

Pending checkout orders live here between order creation and client-side
verification. Stores are injected where needed; pick one with ``get_ttl_store``.
"""

import json
import time
from typing import Any, Optional, Protocol

import redis.asyncio as redis

from tollgate.core.config import settings


class TTLStore(Protocol):
    """Key/value store whose entries expire."""

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        ...

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the value, or None if missing or expired."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...


class InMemoryTTLStore:
    """Process-local TTL store."""

    def __init__(self, clock=time.monotonic) -> None:
        """Initialize the store with an injectable clock."""
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._entries.pop(key, None)


class RedisTTLStore:
    """TTL store backed by Redis key expiry."""

    def __init__(self, client: redis.Redis, namespace: str = "tollgate") -> None:
        """Initialize the store with a redis client."""
        self._client = client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        await self._client.set(self._key(key), json.dumps(value), ex=ttl_seconds)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the value, or None if missing or expired."""
        raw = await self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        await self._client.delete(self._key(key))


def create_redis_client() -> redis.Redis:
    """Create a redis client from settings."""
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD or None,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )


def get_ttl_store() -> TTLStore:
    """Build the store configured by PENDING_CHECKOUT_STORE."""
    if settings.PENDING_CHECKOUT_STORE == "redis":
        return RedisTTLStore(create_redis_client())
    return InMemoryTTLStore()
