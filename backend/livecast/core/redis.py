"""Redis connection configuration and keyed expiring store."""

from typing import Optional

import redis.asyncio as redis

from livecast.core.config import settings

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class ExpiringKeyStore:
    """Namespaced key/value store where every entry carries a TTL.

    Replaces process-local dicts and sets for short-lived state (revoked
    token ids, one-time codes) so the state survives restarts and is shared
    between instances.
    """

    def __init__(self, client: redis.Redis, namespace: str):
        self._client = client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ``ttl_seconds``.

        Raises:
            ValueError: If the TTL is not positive
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        await self._client.set(self._key(key), value, ex=ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(self._key(key))

    async def contains(self, key: str) -> bool:
        return bool(await self._client.exists(self._key(key)))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))
