import pytest

from formguard.core.config.settings import Settings
from formguard.core.exceptions import PersistenceUnavailableError
from formguard.domain.rate_limiting import KeyValueStore, StorageResult, TokenBucketConfig
from formguard.infrastructure.storage import InMemoryKeyValueStore


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FailingKeyValueStore(KeyValueStore):
    """Store whose every call fails, counting the attempts."""

    def __init__(self):
        self.calls = 0

    async def get(self, key):
        self.calls += 1
        return StorageResult.failure(PersistenceUnavailableError("store offline"))

    async def set(self, key, value):
        self.calls += 1
        return StorageResult.failure(PersistenceUnavailableError("store offline"))

    async def delete(self, key):
        self.calls += 1
        return StorageResult.failure(PersistenceUnavailableError("store offline"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def failing_store():
    return FailingKeyValueStore()


@pytest.fixture
def test_settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None, STORAGE_BACKEND="memory", LOG_LEVEL="DEBUG")


@pytest.fixture
def registration_config():
    return TokenBucketConfig(max_tokens=5, refill_rate=1, refill_interval_ms=60_000, cooldown_ms=60_000)


@pytest.fixture
def burst_config():
    """Bucket without cooldown, for exercising token exhaustion."""
    return TokenBucketConfig(max_tokens=3, refill_rate=1, refill_interval_ms=1_000, cooldown_ms=0)
