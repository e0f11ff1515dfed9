"""
Rate Limiting Domain Services

Services that apply the rate limiting rules to live state.

Services:
- TokenBucketLimiter: Named, persisted token bucket with a cooldown gate
- AttemptWindowLimiter: Per-key sliding window with a temporary block

Concurrency:
    Everything runs on one asyncio loop. A token bucket serializes each
    read-modify-write-persist sequence (consume, refill tick, load) behind a
    per-instance lock so a consume and a refill tick firing at the same time
    are applied one after the other and their writes reach the store in order.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, Dict, Optional

import structlog

from formguard.core.logging import mask_identifier
from formguard.utils.clock import Clock, ceil_seconds, system_clock_ms

from .entities import AttemptRecord, RateLimitResult, TokenBucketState
from .repositories import KeyValueStore
from .value_objects import AttemptWindowConfig, LimiterStatus, SecurityErrorType, TokenBucketConfig

logger = structlog.get_logger(__name__)

StatusObserver = Callable[[LimiterStatus], None]


class TokenBucketLimiter:
    """
    Token bucket with a fixed cooldown between accepted submissions.

    State is loaded from the key-value store when the limiter is created and
    written back after every mutation. When the store fails the limiter keeps
    working from memory for the rest of its lifetime and never raises.

    Use `TokenBucketLimiter.create(...)` to get a loaded limiter with its
    refill task running; call `close()` at teardown.
    """

    def __init__(
        self,
        config: TokenBucketConfig,
        name: str,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        observer: Optional[StatusObserver] = None,
        key_prefix: str = "formguard",
    ):
        if not name:
            raise ValueError("Limiter name cannot be empty")

        self.config = config
        self.name = name
        self.storage_key = f"{key_prefix}:ratelimit:{name}"
        self._store = store
        self._clock = clock or system_clock_ms
        self._observer = observer
        self._state = TokenBucketState.full(config, self._clock())
        self._lock = asyncio.Lock()
        self._refill_task: Optional[asyncio.Task] = None
        self._persistence_available = store is not None

    @classmethod
    async def create(
        cls,
        config: TokenBucketConfig,
        name: str,
        store: Optional[KeyValueStore] = None,
        *,
        clock: Optional[Clock] = None,
        observer: Optional[StatusObserver] = None,
        key_prefix: str = "formguard",
        auto_refill: bool = True,
    ) -> TokenBucketLimiter:
        """Build a limiter, load its persisted state and start refilling."""
        limiter = cls(config, name, store, clock=clock, observer=observer, key_prefix=key_prefix)
        await limiter.load()
        if auto_refill:
            limiter.start()
        return limiter

    @property
    def state(self) -> TokenBucketState:
        return self._state

    @property
    def persistence_available(self) -> bool:
        return self._persistence_available

    @property
    def is_running(self) -> bool:
        return self._refill_task is not None and not self._refill_task.done()

    async def load(self) -> None:
        """
        Load persisted state, then credit intervals missed while inactive.

        Missing or inconsistent stored state yields a full bucket.
        """
        async with self._lock:
            now = self._clock()
            loaded = TokenBucketState.full(self.config, now)

            if self._persistence_available:
                result = await self._store.get(self.storage_key)
                if not result.ok:
                    self._degrade(result.error, "load")
                elif result.value is not None:
                    try:
                        loaded = TokenBucketState.from_json(result.value, self.config, now)
                    except ValueError as e:
                        logger.warning(
                            "Discarding inconsistent limiter state",
                            limiter=self.name,
                            error=str(e),
                        )

            self._state = loaded.refilled(self.config, now)
            if self._state != loaded:
                await self._persist()

        logger.debug(
            "Token bucket loaded",
            limiter=self.name,
            tokens=self._state.tokens,
            max_tokens=self.config.max_tokens,
            persistent=self._persistence_available,
        )
        if self._state != loaded:
            self._notify()

    def start(self) -> None:
        """Start the periodic refill task on the running loop."""
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._refill_task = loop.create_task(
            self._refill_loop(), name=f"formguard-refill-{self.name}"
        )

    async def close(self) -> None:
        """Cancel the refill task. Safe to call more than once."""
        task, self._refill_task = self._refill_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _refill_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.refill_interval_seconds)
            await self.refill()

    async def refill(self) -> bool:
        """
        Apply one scheduled refill step.

        Returns:
            True if tokens were added.
        """
        async with self._lock:
            ticked = self._state.ticked(self.config, self._clock())
            if ticked == self._state:
                return False
            self._state = ticked
            await self._persist()

        logger.debug("Token bucket refilled", limiter=self.name, tokens=ticked.tokens)
        self._notify()
        return True

    async def try_consume(self) -> RateLimitResult:
        """
        Attempt to take one token for a submission.

        The cooldown gate is checked before the token count, so a submission
        inside the cooldown window is reported as COOLDOWN even when the
        bucket is also empty.

        Returns:
            RateLimitResult describing the decision.
        """
        async with self._lock:
            now = self._clock()
            previous = self._state
            state = previous.refilled(self.config, now)

            cooldown_remaining = state.cooldown_remaining_ms(self.config, now)
            if cooldown_remaining > 0:
                result = RateLimitResult.cooldown_result(
                    state.tokens, self.config.max_tokens, cooldown_remaining
                )
            elif state.tokens <= 0:
                result = RateLimitResult.exhausted_result(self.config.max_tokens)
            else:
                state = state.consumed(self.config, now)
                result = RateLimitResult.allowed_result(state.tokens, self.config.max_tokens)

            self._state = state
            if state != previous:
                await self._persist()

        if result.allowed:
            logger.debug("Submission token consumed", limiter=self.name, tokens=result.tokens)
        else:
            logger.info(
                "Submission rate limited",
                limiter=self.name,
                error_type=result.error_type.value,
                retry_after=result.retry_after,
                tokens=result.tokens,
            )
        if state != previous:
            self._notify()
        return result

    def get_status(self) -> LimiterStatus:
        """Current status for display. Projects pending refills without storing them."""
        now = self._clock()
        state = self._state.refilled(self.config, now)
        remaining = state.cooldown_remaining_ms(self.config, now)
        return LimiterStatus(
            tokens=state.tokens,
            max_tokens=self.config.max_tokens,
            percentage=state.tokens / self.config.max_tokens * 100,
            cooldown_active=remaining > 0,
            cooldown_remaining_ms=remaining,
        )

    async def _persist(self) -> None:
        if not self._persistence_available:
            return
        result = await self._store.set(self.storage_key, self._state.to_json())
        if not result.ok:
            self._degrade(result.error, "save")

    def _degrade(self, error: Optional[Exception], operation: str) -> None:
        self._persistence_available = False
        logger.warning(
            "Limiter storage unavailable, continuing in memory",
            limiter=self.name,
            operation=operation,
            error_type=SecurityErrorType.PERSISTENCE_UNAVAILABLE.value,
            error=str(error) if error else None,
        )

    def _notify(self) -> None:
        if self._observer is None:
            return
        try:
            self._observer(self.get_status())
        except Exception as e:
            logger.error("Limiter status observer failed", limiter=self.name, error=str(e))


class AttemptWindowLimiter:
    """
    Sliding-window attempt limiter with a temporary block.

    Tracks attempt timestamps per key in memory. When more than
    `max_attempts` attempts land inside `window_ms`, the key is blocked for
    `block_duration_ms`; an expired block is cleared on the next check.

    Keys with no attempts left in the window and no active block are
    dropped, at most once per window, so the table only holds live keys.
    """

    def __init__(
        self,
        config: AttemptWindowConfig,
        name: str = "attempts",
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.name = name
        self._clock = clock or system_clock_ms
        self._records: Dict[str, AttemptRecord] = {}
        self._last_sweep_ms = self._clock()

    def record_attempt(self, key: str) -> RateLimitResult:
        """
        Record an attempt for a key and decide whether it may proceed.

        Args:
            key: Identity being limited (e.g. "login:<client>").

        Returns:
            RateLimitResult; `tokens` carries the attempts left in the window.
        """
        now = self._clock()
        self._sweep(now)
        record = self._records.setdefault(key, AttemptRecord())

        if record.is_blocked(now):
            retry_after = ceil_seconds(record.blocked_until_ms - now)
            logger.info(
                "Attempt rejected while blocked",
                limiter=self.name,
                key=mask_identifier(key, visible=6),
                retry_after=retry_after,
            )
            return RateLimitResult.blocked_result(self.config.max_attempts, retry_after)

        if record.block_expired(now):
            record.blocked_until_ms = None

        record.prune(now - self.config.window_ms)
        record.attempts.append(now)

        if len(record.attempts) > self.config.max_attempts:
            record.blocked_until_ms = now + self.config.block_duration_ms
            retry_after = ceil_seconds(self.config.block_duration_ms)
            logger.warning(
                "Attempt limit exceeded, key blocked",
                limiter=self.name,
                key=mask_identifier(key, visible=6),
                attempts=len(record.attempts),
                retry_after=retry_after,
            )
            return RateLimitResult.blocked_result(self.config.max_attempts, retry_after)

        return RateLimitResult.allowed_result(
            self.config.max_attempts - len(record.attempts), self.config.max_attempts
        )

    def is_blocked(self, key: str) -> bool:
        """Whether the key is currently blocked. Clears an expired block."""
        record = self._records.get(key)
        if record is None:
            return False
        now = self._clock()
        if record.block_expired(now):
            record.blocked_until_ms = None
        if record.is_stale(now, self.config.window_ms):
            del self._records[key]
            return False
        return record.is_blocked(now)

    def reset(self, key: str) -> None:
        """Forget all attempts and any block for a key."""
        if self._records.pop(key, None) is not None:
            logger.debug("Attempt window reset", limiter=self.name, key=mask_identifier(key, visible=6))

    def snapshot(self, key: str) -> Optional[dict]:
        """Stored attempts and block deadline for a key, for diagnostics."""
        record = self._records.get(key)
        return record.snapshot() if record else None

    def __len__(self) -> int:
        return len(self._records)

    def _sweep(self, now: int) -> None:
        if now - self._last_sweep_ms < self.config.window_ms:
            return
        self._last_sweep_ms = now
        stale = [key for key, record in self._records.items() if record.is_stale(now, self.config.window_ms)]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("Expired attempt records dropped", limiter=self.name, count=len(stale))
