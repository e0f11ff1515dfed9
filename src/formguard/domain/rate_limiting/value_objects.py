"""
Rate Limiting Value Objects

Immutable value objects representing core concepts in the rate limiting domain.
These objects encapsulate business rules and invariants at construction time.

Value Objects:
- SecurityErrorType: Taxonomy of rejection reasons
- TokenBucketConfig: Capacity, refill and cooldown of a token bucket
- AttemptWindowConfig: Sliding window size and block period
- LimiterStatus: Read-only snapshot used for display
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SecurityErrorType(str, Enum):
    """
    Reasons a submission can be turned away.

    - COOLDOWN: minimum gap between accepted submissions not yet elapsed
    - RATE_LIMITED: bucket exhausted, or window exceeded / key blocked
    - VALIDATION_ERROR: one or more fields failed their schema
    - PERSISTENCE_UNAVAILABLE: storage failed; logged only, never shown
    """
    COOLDOWN = "COOLDOWN"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"

    @property
    def is_user_facing(self) -> bool:
        """Whether the rejection is reported to the person submitting."""
        return self is not SecurityErrorType.PERSISTENCE_UNAVAILABLE


@dataclass(frozen=True, slots=True)
class TokenBucketConfig:
    """
    Immutable token bucket configuration.

    Business Rules:
    - Capacity, refill rate and refill interval must be positive
    - Cooldown may be zero (disabled) but never negative
    """
    max_tokens: int
    refill_rate: int
    refill_interval_ms: int
    cooldown_ms: int = 0

    def __post_init__(self):
        """Validate configuration at construction time"""
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")

        if self.refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        if self.refill_interval_ms <= 0:
            raise ValueError("refill_interval_ms must be positive")

        if self.cooldown_ms < 0:
            raise ValueError("cooldown_ms cannot be negative")

    @property
    def has_cooldown(self) -> bool:
        return self.cooldown_ms > 0

    @property
    def refill_interval_seconds(self) -> float:
        return self.refill_interval_ms / 1000


@dataclass(frozen=True, slots=True)
class AttemptWindowConfig:
    """
    Immutable sliding-window configuration.

    A key that records more than `max_attempts` attempts inside `window_ms`
    is blocked for `block_duration_ms`.
    """
    max_attempts: int
    window_ms: int
    block_duration_ms: int

    def __post_init__(self):
        """Validate configuration at construction time"""
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")

        if self.block_duration_ms <= 0:
            raise ValueError("block_duration_ms must be positive")


@dataclass(frozen=True, slots=True)
class LimiterStatus:
    """
    Snapshot of a token bucket, as handed to UI observers.

    `level` buckets the fill percentage into the three display bands used
    by the status indicator.
    """
    tokens: int
    max_tokens: int
    percentage: float
    cooldown_active: bool
    cooldown_remaining_ms: int

    @property
    def level(self) -> str:
        if self.percentage > 50:
            return "green"
        if self.percentage > 25:
            return "yellow"
        return "red"

    def as_dict(self) -> dict:
        """Observer payload in the shape the display layer expects."""
        return {
            "tokens": self.tokens,
            "max_tokens": self.max_tokens,
            "percentage": self.percentage,
            "cooldown_active": self.cooldown_active,
            "cooldown_remaining": self.cooldown_remaining_ms,
        }
