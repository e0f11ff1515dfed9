"""Rate Limiting Domain Module

Domain model for the submission limiters:

- Value Objects: immutable configuration and status snapshots
- Entities: bucket state, attempt records and limiter decisions
- Services: the token bucket and attempt window limiters
- Repositories: the key-value persistence contract
"""

from .entities import AttemptRecord, RateLimitResult, TokenBucketState
from .repositories import KeyValueStore, StorageResult
from .services import AttemptWindowLimiter, StatusObserver, TokenBucketLimiter
from .value_objects import AttemptWindowConfig, LimiterStatus, SecurityErrorType, TokenBucketConfig

__all__ = [
    "AttemptRecord",
    "AttemptWindowConfig",
    "AttemptWindowLimiter",
    "KeyValueStore",
    "LimiterStatus",
    "RateLimitResult",
    "SecurityErrorType",
    "StatusObserver",
    "StorageResult",
    "TokenBucketConfig",
    "TokenBucketLimiter",
    "TokenBucketState",
]
