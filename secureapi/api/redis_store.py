"""Redis-backed quota store."""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from secureapi.core.exceptions import QuotaStoreError
from secureapi.core.quota import QuotaStore
from secureapi.utils.logger import get_logger

logger = get_logger(__name__)

# DECR that never creates a key or goes below zero
_DECR_IF_POSITIVE = """
local value = tonumber(redis.call("GET", KEYS[1]))
if value and value > 0 then
    return redis.call("DECR", KEYS[1])
end
return 0
"""


class RedisQuotaStore(QuotaStore):
    """
    QuotaStore on top of Redis.

    New counters are created with their expiry in the same MULTI block that
    increments them, so a counter can never end up without a TTL.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisQuotaStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> int:
        try:
            value = await self.client.get(key)
        except RedisError as e:
            raise QuotaStoreError(f"Quota store unavailable: {e}")
        return int(value) if value else 0

    async def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                if ttl_ms:
                    pipe.set(key, 0, px=ttl_ms, nx=True)
                pipe.incr(key)
                results = await pipe.execute()
        except RedisError as e:
            raise QuotaStoreError(f"Quota store unavailable: {e}")
        return int(results[-1])

    async def decr(self, key: str) -> int:
        try:
            return int(await self.client.eval(_DECR_IF_POSITIVE, 1, key))
        except RedisError as e:
            raise QuotaStoreError(f"Quota store unavailable: {e}")

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
