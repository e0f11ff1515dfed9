"""
In-memory key-value store.

Used when no durable backend is configured and as the test double for the
Redis backend. State lives only as long as the process.
"""

from typing import Dict

from formguard.domain.rate_limiting.repositories import KeyValueStore, StorageResult


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed implementation of `KeyValueStore`."""

    def __init__(self, initial: Dict[str, str] | None = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> StorageResult:
        return StorageResult.success(self._data.get(key))

    async def set(self, key: str, value: str) -> StorageResult:
        self._data[key] = value
        return StorageResult.success(value)

    async def delete(self, key: str) -> StorageResult:
        self._data.pop(key, None)
        return StorageResult.success()

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
