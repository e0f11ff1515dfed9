"""
Feature tests: complete submission journeys through the coordinator.

Each scenario drives a real coordinator with an in-memory store and a fake
clock, the way a form host would.
"""

import pytest

from formguard.domain.rate_limiting import SecurityErrorType
from formguard.domain.submission import Accepted, RateLimited, SecurityCoordinator, SubmitControl

REGISTRATION = {
    "team_email": "team@example.com",
    "team_name": "Byte Busters",
    "member1_name": "Grace Hopper",
    "member1_usn": "1CR23CS001",
    "member1_dept": "CSE",
    "member2_name": "Alan Turing",
    "member2_usn": "1cr23cs002",
    "member2_dept": "ISE",
}


@pytest.mark.feature
@pytest.mark.asyncio
async def test_rapid_registration_submissions_hit_cooldown(test_settings, memory_store, clock):
    """Five submissions 0.1 s apart: the first is accepted, the rest wait out the cooldown."""
    coordinator = await SecurityCoordinator.create(test_settings, memory_store, clock=clock, auto_refill=False)
    control = SubmitControl(label="Register Team")

    outcomes = []
    for _ in range(5):
        outcome = await coordinator.process_submission("registration", REGISTRATION, control)
        if outcome.accepted:
            coordinator.debouncer.restore_from_loading(control)
        outcomes.append(outcome)
        clock.advance(100)

    assert isinstance(outcomes[0], Accepted)
    assert outcomes[0].sanitized_data["member2_usn"] == "1CR23CS002"
    assert all(isinstance(o, RateLimited) for o in outcomes[1:])
    assert all(o.error_type is SecurityErrorType.COOLDOWN for o in outcomes[1:])
    assert control.label == "Register Team"
    assert not control.disabled
    assert coordinator.registration_status().tokens == 4

    await coordinator.close()


@pytest.mark.feature
@pytest.mark.asyncio
async def test_login_lockout_after_three_attempts(test_settings, memory_store, clock):
    """Three attempts inside five minutes pass; the fourth is blocked for fifteen."""
    coordinator = await SecurityCoordinator.create(test_settings, memory_store, clock=clock, auto_refill=False)
    credentials = {"username": "admin@example.com", "password": "wrong-password"}

    outcomes = []
    for _ in range(4):
        outcomes.append(
            await coordinator.process_submission("login", credentials, SubmitControl(), client_key="203.0.113.9")
        )
        clock.advance(1_000)

    assert [o.accepted for o in outcomes] == [True, True, True, False]
    assert 895 <= outcomes[3].retry_after <= 900

    clock.advance(900_000)
    outcome = await coordinator.process_submission("login", credentials, SubmitControl(), client_key="203.0.113.9")
    assert outcome.accepted

    await coordinator.close()


@pytest.mark.feature
@pytest.mark.asyncio
async def test_registration_limits_survive_restart(test_settings, memory_store, clock):
    """Bucket state is shared through the store across coordinator instances."""
    first = await SecurityCoordinator.create(test_settings, memory_store, clock=clock, auto_refill=False)
    await first.process_submission("registration", REGISTRATION, SubmitControl())
    await first.close()

    clock.advance(5_000)
    second = await SecurityCoordinator.create(test_settings, memory_store, clock=clock, auto_refill=False)
    outcome = await second.process_submission("registration", REGISTRATION, SubmitControl())

    assert isinstance(outcome, RateLimited)
    assert outcome.retry_after == 55

    clock.advance(55_000)
    outcome = await second.process_submission("registration", REGISTRATION, SubmitControl())
    assert outcome.accepted
    assert second.registration_status().tokens == 4

    await second.close()


@pytest.mark.feature
@pytest.mark.asyncio
async def test_storage_outage_never_blocks_submissions(test_settings, failing_store, clock):
    coordinator = await SecurityCoordinator.create(test_settings, failing_store, clock=clock, auto_refill=False)

    outcome = await coordinator.process_submission("registration", REGISTRATION, SubmitControl())

    assert outcome.accepted
    assert not coordinator.registration_limiter.persistence_available
    await coordinator.close()
