"""
Key-value storage backends for limiter state.

`build_store` picks the backend named by `STORAGE_BACKEND`.
"""

import structlog

from formguard.core.config.settings import Settings
from formguard.domain.rate_limiting.repositories import KeyValueStore

from .memory import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore, create_redis

logger = structlog.get_logger(__name__)


def build_store(settings: Settings) -> KeyValueStore:
    """Create the configured key-value store."""
    if settings.STORAGE_BACKEND == "redis":
        logger.info("Using Redis limiter storage", host=settings.REDIS_HOST, db=settings.REDIS_DB)
        return RedisKeyValueStore.from_url(settings.REDIS_URL)
    logger.info("Using in-memory limiter storage")
    return InMemoryKeyValueStore()


__all__ = [
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "build_store",
    "create_redis",
]
