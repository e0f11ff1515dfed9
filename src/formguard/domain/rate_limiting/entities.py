"""Rate Limiting Domain Entities

Entities that represent the state and decisions of the submission limiters.

Entities:
- TokenBucketState: Persisted state of one named token bucket
- RateLimitResult: Result of a rate limiting check
- AttemptRecord: Sliding-window attempts and block state of one key

State transitions on `TokenBucketState` are pure: each returns a new state,
so the limiter service can compute a projection for read-only status queries
and commit the same projection when it mutates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from formguard.utils.clock import ceil_seconds

from .value_objects import SecurityErrorType, TokenBucketConfig


@dataclass(frozen=True)
class TokenBucketState:
    """Persisted state of a token bucket.

    Business Rules:
    - tokens stays within [0, max_tokens]
    - last_submit_ms is None until the first accepted submission
    """

    tokens: int
    last_refill_ms: int
    last_submit_ms: Optional[int] = None

    def __post_init__(self):
        if self.tokens < 0:
            raise ValueError("tokens cannot be negative")

    @classmethod
    def full(cls, config: TokenBucketConfig, now_ms: int) -> TokenBucketState:
        """A fresh bucket at capacity."""
        return cls(tokens=config.max_tokens, last_refill_ms=now_ms)

    @classmethod
    def from_json(cls, raw: str, config: TokenBucketConfig, now_ms: int) -> TokenBucketState:
        """Rebuild a state from its stored form.

        Tokens are clamped to capacity and timestamps in the future to `now_ms`.

        Raises:
            ValueError: If the payload is not a consistent bucket state.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Stored bucket state is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Stored bucket state must be an object")

        tokens = data.get("tokens")
        last_refill = data.get("last_refill", now_ms)
        last_submit = data.get("last_submit")
        if not _is_int(tokens) or not _is_int(last_refill):
            raise ValueError("Stored bucket state has non-integer fields")
        if last_submit is not None and not _is_int(last_submit):
            raise ValueError("Stored last_submit must be an integer")

        return cls(
            tokens=min(max(int(tokens), 0), config.max_tokens),
            last_refill_ms=min(int(last_refill), now_ms),
            last_submit_ms=None if last_submit is None else min(int(last_submit), now_ms),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "tokens": self.tokens,
                "last_refill": self.last_refill_ms,
                "last_submit": self.last_submit_ms,
            }
        )

    def refilled(self, config: TokenBucketConfig, now_ms: int) -> TokenBucketState:
        """Credit every whole refill interval elapsed since the last refill.

        Leftover time below one interval is kept so repeated calls never lose
        or double-count partial intervals.
        """
        if self.tokens >= config.max_tokens:
            return self

        intervals = (now_ms - self.last_refill_ms) // config.refill_interval_ms
        if intervals <= 0:
            return self

        tokens = min(self.tokens + intervals * config.refill_rate, config.max_tokens)
        return replace(
            self,
            tokens=tokens,
            last_refill_ms=self.last_refill_ms + intervals * config.refill_interval_ms,
        )

    def ticked(self, config: TokenBucketConfig, now_ms: int) -> TokenBucketState:
        """Apply one scheduled refill step."""
        if self.tokens >= config.max_tokens:
            return self
        return replace(
            self,
            tokens=min(self.tokens + config.refill_rate, config.max_tokens),
            last_refill_ms=now_ms,
        )

    def consumed(self, config: TokenBucketConfig, now_ms: int) -> TokenBucketState:
        """Take one token and record the submission time.

        The refill clock restarts when a full bucket is first drawn down;
        time spent at capacity earns nothing.
        """
        if self.tokens <= 0:
            raise ValueError("Cannot consume from an empty bucket")
        last_refill = now_ms if self.tokens >= config.max_tokens else self.last_refill_ms
        return replace(
            self,
            tokens=self.tokens - 1,
            last_refill_ms=last_refill,
            last_submit_ms=now_ms,
        )

    def cooldown_remaining_ms(self, config: TokenBucketConfig, now_ms: int) -> int:
        if not config.has_cooldown or self.last_submit_ms is None:
            return 0
        return min(config.cooldown_ms, max(0, config.cooldown_ms - (now_ms - self.last_submit_ms)))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


COOLDOWN_MESSAGE = "Please wait {seconds} seconds before submitting again"
RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."
BLOCKED_MESSAGE = "Too many attempts. Try again in {seconds}s"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limiting check.

    `tokens` carries the remaining bucket tokens (or remaining window
    attempts); `retry_after` is set in whole seconds when blocked.
    """

    allowed: bool
    tokens: int
    max_tokens: int
    message: str
    error_type: Optional[SecurityErrorType] = None
    retry_after: Optional[int] = None

    @property
    def is_blocked(self) -> bool:
        return not self.allowed

    @classmethod
    def allowed_result(cls, tokens: int, max_tokens: int) -> RateLimitResult:
        return cls(allowed=True, tokens=tokens, max_tokens=max_tokens, message="Request allowed")

    @classmethod
    def cooldown_result(cls, tokens: int, max_tokens: int, remaining_ms: int) -> RateLimitResult:
        seconds = ceil_seconds(remaining_ms)
        return cls(
            allowed=False,
            tokens=tokens,
            max_tokens=max_tokens,
            message=COOLDOWN_MESSAGE.format(seconds=seconds),
            error_type=SecurityErrorType.COOLDOWN,
            retry_after=seconds,
        )

    @classmethod
    def exhausted_result(cls, max_tokens: int, retry_after: Optional[int] = None) -> RateLimitResult:
        return cls(
            allowed=False,
            tokens=0,
            max_tokens=max_tokens,
            message=RATE_LIMITED_MESSAGE,
            error_type=SecurityErrorType.RATE_LIMITED,
            retry_after=retry_after,
        )

    @classmethod
    def blocked_result(cls, max_tokens: int, retry_after: int) -> RateLimitResult:
        return cls(
            allowed=False,
            tokens=0,
            max_tokens=max_tokens,
            message=BLOCKED_MESSAGE.format(seconds=retry_after),
            error_type=SecurityErrorType.RATE_LIMITED,
            retry_after=retry_after,
        )


@dataclass
class AttemptRecord:
    """Attempts seen for one key of a sliding-window limiter."""

    attempts: List[int] = field(default_factory=list)
    blocked_until_ms: Optional[int] = None

    def is_blocked(self, now_ms: int) -> bool:
        return self.blocked_until_ms is not None and now_ms < self.blocked_until_ms

    def block_expired(self, now_ms: int) -> bool:
        return self.blocked_until_ms is not None and now_ms >= self.blocked_until_ms

    def is_stale(self, now_ms: int, window_ms: int) -> bool:
        """No active block and no attempt left inside the window."""
        if self.is_blocked(now_ms):
            return False
        return all(t <= now_ms - window_ms for t in self.attempts)

    def prune(self, window_start_ms: int) -> None:
        """Drop attempts at or before the start of the window."""
        self.attempts = [t for t in self.attempts if t > window_start_ms]

    def snapshot(self) -> Dict[str, Any]:
        return {"attempts": list(self.attempts), "blocked_until": self.blocked_until_ms}
