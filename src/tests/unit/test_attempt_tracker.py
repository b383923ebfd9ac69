"""Tests for AttemptTracker against SQLite."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from cafeauth.core.cooldown import CooldownPolicy
from cafeauth.core.errors import StoreUnavailableError
from cafeauth.core.models import AttemptRecord
from cafeauth.services import AttemptTracker


async def fail(db_session, username: str, times: int) -> AttemptRecord:
    record = None
    for _ in range(times):
        record = await AttemptTracker.record_failure(db_session, username)
    return record


@pytest.mark.asyncio
async def test_unknown_identity_has_zero_state(db_session):
    record = await AttemptTracker.get_state(db_session, "nobody")

    assert record.attempts == 0
    assert record.lockout_level == 0
    assert record.lockout_until == 0

    status = await AttemptTracker.check_cooldown(db_session, "nobody")
    assert not status.on_cooldown
    assert status.remaining_seconds == 0


@pytest.mark.asyncio
async def test_two_failures_do_not_lock(db_session, clock):
    record = await fail(db_session, "alice", 2)

    assert record.attempts == 2
    assert record.lockout_level == 0
    assert not (await AttemptTracker.check_cooldown(db_session, "alice")).on_cooldown


@pytest.mark.asyncio
async def test_three_failures_lock_for_two_minutes(db_session, clock):
    record = await fail(db_session, "alice", 3)

    assert record.attempts == 0
    assert record.lockout_level == 1

    status = await AttemptTracker.check_cooldown(db_session, "alice")
    assert status.on_cooldown
    assert status.remaining_seconds == 120


@pytest.mark.asyncio
async def test_second_cycle_locks_for_four_minutes(db_session, clock):
    await fail(db_session, "alice", 3)
    clock.advance(121)
    assert not (await AttemptTracker.check_cooldown(db_session, "alice")).on_cooldown

    record = await fail(db_session, "alice", 3)

    assert record.lockout_level == 2
    status = await AttemptTracker.check_cooldown(db_session, "alice")
    assert status.remaining_seconds == 240


@pytest.mark.asyncio
async def test_expired_lockout_restarts_counter(db_session, clock):
    await fail(db_session, "alice", 3)
    clock.advance(200)

    record = await AttemptTracker.record_failure(db_session, "alice")

    assert record.attempts == 1
    assert record.lockout_level == 1
    assert record.lockout_until == 0


@pytest.mark.asyncio
async def test_remaining_seconds_decrease(db_session, clock):
    await fail(db_session, "alice", 3)

    first = await AttemptTracker.check_cooldown(db_session, "alice")
    clock.advance(30)
    second = await AttemptTracker.check_cooldown(db_session, "alice")

    assert second.remaining_seconds == first.remaining_seconds - 30


@pytest.mark.asyncio
async def test_identity_is_case_insensitive(db_session, clock):
    await AttemptTracker.record_failure(db_session, "Alice")
    await AttemptTracker.record_failure(db_session, "ALICE")
    await AttemptTracker.record_failure(db_session, " alice ")

    assert (await AttemptTracker.check_cooldown(db_session, "alice")).on_cooldown


@pytest.mark.asyncio
async def test_reset_clears_cooldown_and_level(db_session, clock):
    await fail(db_session, "alice", 3)

    assert await AttemptTracker.reset(db_session, "alice") is True

    status = await AttemptTracker.check_cooldown(db_session, "alice")
    assert not status.on_cooldown
    assert status.remaining_seconds == 0
    assert (await AttemptTracker.get_state(db_session, "alice")).lockout_level == 0


@pytest.mark.asyncio
async def test_reset_unknown_identity(db_session):
    assert await AttemptTracker.reset(db_session, "nobody") is False


@pytest.mark.asyncio
async def test_identities_are_independent(db_session, clock):
    await fail(db_session, "alice", 3)
    await fail(db_session, "bob", 1)

    assert (await AttemptTracker.check_cooldown(db_session, "alice")).on_cooldown
    assert not (await AttemptTracker.check_cooldown(db_session, "bob")).on_cooldown


@pytest.mark.asyncio
async def test_list_locked_and_reset_all(db_session, clock):
    await fail(db_session, "alice", 3)
    await fail(db_session, "bob", 6)
    await fail(db_session, "carol", 1)

    locked = await AttemptTracker.list_locked(db_session)
    assert [r.username for r in locked] == ["bob", "alice"]

    assert await AttemptTracker.reset_all(db_session) == 3
    assert await AttemptTracker.list_locked(db_session) == []


@pytest.mark.asyncio
async def test_concurrent_failures_are_not_lost(tmp_path, clock):
    """Failures racing on separate connections end up as if applied serially."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'attempts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def fail_once() -> None:
        async with factory() as db:
            await AttemptTracker.record_failure(db, "alice")

    try:
        results = await asyncio.gather(*(fail_once() for _ in range(5)), return_exceptions=True)
        async with factory() as db:
            record = await AttemptTracker.get_state(db, "alice")
    finally:
        await engine.dispose()

    # A race may be refused outright, but never silently dropped
    errors = [r for r in results if r is not None]
    assert all(isinstance(e, StoreUnavailableError) for e in errors)
    assert len(errors) < len(results)

    policy = CooldownPolicy()
    attempts = level = 0
    for _ in range(len(results) - len(errors)):
        decision = policy.next_failure(attempts, level)
        attempts, level = decision.attempts, decision.lockout_level
    assert (record.attempts, record.lockout_level) == (attempts, level)
