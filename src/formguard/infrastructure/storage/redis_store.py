"""
Redis Key-Value Store

Persists limiter state in Redis so buckets survive restarts and are shared by
every process pointed at the same instance.

**Security Note**: Use a `rediss://` URL and a password whenever Redis is
reachable over an untrusted network. Connection URLs are never logged since
they may embed credentials.
"""

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from formguard.core.exceptions import PersistenceUnavailableError
from formguard.domain.rate_limiting.repositories import KeyValueStore, StorageResult

logger = structlog.get_logger(__name__)


def create_redis(url: str) -> Redis:
    """Build an asyncio Redis client that returns `str` values."""
    return Redis.from_url(url, encoding="utf-8", decode_responses=True)


class RedisKeyValueStore(KeyValueStore):
    """
    `KeyValueStore` over an asyncio Redis client.

    Connection and command errors are reported as failed results, never
    raised, so a Redis outage degrades limiters to memory instead of
    blocking submissions.
    """

    def __init__(self, redis: Redis, owns_client: bool = False):
        self.redis = redis
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(create_redis(url), owns_client=True)

    async def get(self, key: str) -> StorageResult:
        try:
            return StorageResult.success(await self.redis.get(key))
        except (RedisError, OSError) as e:
            return self._failure("get", key, e)

    async def set(self, key: str, value: str) -> StorageResult:
        try:
            await self.redis.set(key, value)
            return StorageResult.success(value)
        except (RedisError, OSError) as e:
            return self._failure("set", key, e)

    async def delete(self, key: str) -> StorageResult:
        try:
            await self.redis.delete(key)
            return StorageResult.success()
        except (RedisError, OSError) as e:
            return self._failure("delete", key, e)

    async def close(self) -> None:
        """Close the client if this store created it."""
        if self._owns_client:
            await self.redis.aclose()
            logger.debug("Redis connection closed")

    def _failure(self, operation: str, key: str, error: Exception) -> StorageResult:
        logger.warning(
            "Redis operation failed",
            operation=operation,
            key=key,
            error=str(error),
        )
        return StorageResult.failure(PersistenceUnavailableError(f"Redis {operation} failed: {error}"))
