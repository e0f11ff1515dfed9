"""
Unit tests for the token bucket limiter.

Time is driven by a fake clock and the refill task is disabled unless a test
is about the task itself, so every assertion is deterministic.
"""

import asyncio
import json

import pytest

from formguard.domain.rate_limiting import (
    LimiterStatus,
    SecurityErrorType,
    TokenBucketConfig,
    TokenBucketLimiter,
)

KEY = "formguard:ratelimit:registration"


async def make_limiter(config, store, clock, **kwargs):
    kwargs.setdefault("auto_refill", False)
    return await TokenBucketLimiter.create(config, "registration", store, clock=clock, **kwargs)


class TestTryConsume:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fresh_bucket_starts_full(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock)

        status = limiter.get_status()
        assert status.tokens == 5
        assert status.percentage == 100
        assert not status.cooldown_active

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_submissions_inside_cooldown_are_rejected(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock)

        first = await limiter.try_consume()
        clock.advance(100)
        second = await limiter.try_consume()

        assert first.allowed
        assert first.tokens == 4
        assert not second.allowed
        assert second.error_type is SecurityErrorType.COOLDOWN
        assert second.retry_after == 60
        assert second.message == "Please wait 60 seconds before submitting again"
        # A cooldown rejection never spends a token
        assert limiter.state.tokens == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cooldown_remaining_rounds_up(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock)

        await limiter.try_consume()
        clock.advance(58_500)
        result = await limiter.try_consume()

        assert result.retry_after == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_submission_allowed_once_cooldown_elapses(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock)

        await limiter.try_consume()
        clock.advance(60_000)
        result = await limiter.try_consume()

        assert result.allowed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhausted_bucket_is_rate_limited(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)

        results = [await limiter.try_consume() for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[-1].error_type is SecurityErrorType.RATE_LIMITED
        assert results[-1].message == "Too many requests. Please try again later."
        assert results[-1].tokens == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_interval_restores_exactly_refill_rate(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)
        for _ in range(3):
            await limiter.try_consume()

        clock.advance(1_000)
        after_refill = [await limiter.try_consume() for _ in range(2)]

        assert [r.allowed for r in after_refill] == [True, False]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cooldown_checked_before_tokens(self, memory_store, clock):
        config = TokenBucketConfig(max_tokens=1, refill_rate=1, refill_interval_ms=600_000, cooldown_ms=10_000)
        limiter = await make_limiter(config, memory_store, clock)

        await limiter.try_consume()
        clock.advance(100)
        result = await limiter.try_consume()

        assert result.error_type is SecurityErrorType.COOLDOWN

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_consumes_never_overspend(self, memory_store, clock):
        config = TokenBucketConfig(max_tokens=5, refill_rate=1, refill_interval_ms=60_000)
        limiter = await make_limiter(config, memory_store, clock)

        results = await asyncio.gather(*(limiter.try_consume() for _ in range(10)))

        assert sum(r.allowed for r in results) == 5
        assert json.loads((await memory_store.get(KEY)).value)["tokens"] == 0


class TestRefill:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tokens_never_exceed_capacity(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)
        await limiter.try_consume()

        clock.advance(10 * 24 * 3600 * 1000)
        for _ in range(5):
            await limiter.refill()

        assert limiter.get_status().tokens == 3
        assert limiter.state.tokens == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refill_tick_adds_rate_and_persists(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)
        for _ in range(3):
            await limiter.try_consume()

        assert await limiter.refill() is True

        assert limiter.state.tokens == 1
        assert json.loads((await memory_store.get(KEY)).value)["tokens"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refill_on_full_bucket_is_noop(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)

        assert await limiter.refill() is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_idle_time_at_capacity_is_not_credited(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock)

        clock.advance(10 * 60_000)
        await limiter.try_consume()
        clock.advance(59_000)

        assert limiter.state.last_refill_ms == clock() - 59_000
        assert limiter.get_status().tokens == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_status_projects_refill_without_storing_it(self, burst_config, memory_store, clock):
        limiter = await make_limiter(burst_config, memory_store, clock)
        for _ in range(3):
            await limiter.try_consume()

        clock.advance(2_500)

        assert limiter.get_status().tokens == 2
        assert limiter.state.tokens == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refill_task_lifecycle(self, memory_store, clock):
        config = TokenBucketConfig(max_tokens=2, refill_rate=1, refill_interval_ms=10)
        limiter = await TokenBucketLimiter.create(config, "fast", memory_store, clock=clock)
        assert limiter.is_running

        await limiter.try_consume()
        await asyncio.sleep(0.05)
        assert limiter.state.tokens == 2

        await limiter.close()
        assert not limiter.is_running
        await limiter.close()


class TestPersistence:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_future_submit_time_limits_cooldown(self, registration_config, memory_store, clock):
        now = clock()
        await memory_store.set(
            KEY, json.dumps({"tokens": 5, "last_refill": now, "last_submit": now + 86_400_000})
        )

        limiter = await make_limiter(registration_config, memory_store, clock)
        result = await limiter.try_consume()

        assert result.error_type is SecurityErrorType.COOLDOWN
        assert result.retry_after == 60

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_state_survives_rebuild(self, registration_config, memory_store, clock):
        first = await make_limiter(registration_config, memory_store, clock)
        await first.try_consume()

        clock.advance(1_000)
        second = await make_limiter(registration_config, memory_store, clock)

        status = second.get_status()
        assert status.tokens == 4
        assert status.cooldown_active
        assert status.cooldown_remaining_ms == 59_000

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_catch_up_refill_applied_at_load(self, registration_config, memory_store, clock):
        now = clock()
        await memory_store.set(
            KEY, json.dumps({"tokens": 1, "last_refill": now - 130_000, "last_submit": None})
        )

        limiter = await make_limiter(registration_config, memory_store, clock)

        assert limiter.state.tokens == 3
        assert limiter.state.last_refill_ms == now - 10_000
        assert json.loads((await memory_store.get(KEY)).value)["tokens"] == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stored_tokens_are_clamped(self, registration_config, memory_store, clock):
        await memory_store.set(KEY, json.dumps({"tokens": 99, "last_refill": clock(), "last_submit": None}))

        limiter = await make_limiter(registration_config, memory_store, clock)

        assert limiter.state.tokens == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"tokens": "five"}', '{"tokens": true}'])
    async def test_inconsistent_state_yields_full_bucket(self, registration_config, memory_store, clock, raw):
        await memory_store.set(KEY, raw)

        limiter = await make_limiter(registration_config, memory_store, clock)

        assert limiter.state.tokens == 5
        assert limiter.persistence_available

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_storage_failure_degrades_to_memory(self, registration_config, failing_store, clock):
        limiter = await make_limiter(registration_config, failing_store, clock)

        result = await limiter.try_consume()

        assert result.allowed
        assert not limiter.persistence_available
        # Only the initial load touches the store once it has failed
        assert failing_store.calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_key_prefix(self, registration_config, memory_store, clock):
        limiter = await make_limiter(registration_config, memory_store, clock, key_prefix="events")
        await limiter.try_consume()

        assert "events:ratelimit:registration" in memory_store


class TestObserver:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_observer_receives_status_on_change(self, registration_config, memory_store, clock):
        seen = []
        limiter = await make_limiter(registration_config, memory_store, clock, observer=seen.append)

        await limiter.try_consume()

        assert len(seen) == 1
        assert isinstance(seen[0], LimiterStatus)
        assert seen[0].tokens == 4
        assert seen[0].cooldown_active

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_observer_errors_are_swallowed(self, registration_config, memory_store, clock):
        def broken(status):
            raise RuntimeError("display gone")

        limiter = await make_limiter(registration_config, memory_store, clock, observer=broken)

        result = await limiter.try_consume()

        assert result.allowed


class TestConstruction:
    @pytest.mark.unit
    def test_empty_name_rejected(self, registration_config):
        with pytest.raises(ValueError):
            TokenBucketLimiter(registration_config, "")
