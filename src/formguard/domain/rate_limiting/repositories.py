"""
Rate Limiting Domain Repositories

Repository interface for the key-value persistence collaborator that keeps
limiter state across restarts.

Design Principles:
- Dependency Inversion: limiters depend on this abstraction, not on Redis
- Explicit failure: every call returns a `StorageResult` instead of raising,
  so callers can always fall back to in-memory state
- Persistence Agnostic: values are opaque strings (JSON by convention)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from formguard.core.exceptions import PersistenceUnavailableError


@dataclass(frozen=True)
class StorageResult:
    """Result-shaped return value of a key-value store call.

    `ok` is False only when the store itself failed; a missing key is a
    successful read with `value=None`.
    """

    ok: bool
    value: Optional[str] = None
    error: Optional[PersistenceUnavailableError] = None

    @classmethod
    def success(cls, value: Optional[str] = None) -> StorageResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: PersistenceUnavailableError) -> StorageResult:
        return cls(ok=False, error=error)

    def unwrap(self) -> Optional[str]:
        """Return the value, raising the stored error for failed calls."""
        if not self.ok:
            raise self.error or PersistenceUnavailableError()
        return self.value


class KeyValueStore(ABC):
    """
    Repository interface for durable limiter state.

    Implementations must catch their own backend errors and report them as
    failed results; limiters rely on calls never raising.
    """

    @abstractmethod
    async def get(self, key: str) -> StorageResult:
        """
        Read the value stored under a key.

        Args:
            key: Fully qualified storage key.

        Returns:
            StorageResult with the value, None when the key is absent.
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> StorageResult:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Fully qualified storage key.
            value: Serialized state.

        Returns:
            StorageResult indicating success or failure.
        """

    @abstractmethod
    async def delete(self, key: str) -> StorageResult:
        """
        Remove a key if present.

        Args:
            key: Fully qualified storage key.

        Returns:
            StorageResult indicating success or failure.
        """

    async def close(self) -> None:
        """Release backend resources. No-op unless the backend holds any."""
        return None
