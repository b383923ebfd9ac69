"""Tests for the cooldown policy (pure, no I/O)."""

import pytest

from cafeauth.core.cooldown import (
    NOT_ON_COOLDOWN,
    CooldownPolicy,
    cooldown_status,
)


class TestNextFailure:
    """Tests for CooldownPolicy.next_failure."""

    def test_first_failures_only_count(self) -> None:
        policy = CooldownPolicy()

        first = policy.next_failure(0, 0)
        second = policy.next_failure(first.attempts, first.lockout_level)

        assert (first.attempts, first.lockout_level, first.locks) == (1, 0, False)
        assert (second.attempts, second.lockout_level, second.locks) == (2, 0, False)

    def test_third_failure_starts_level_one(self) -> None:
        decision = CooldownPolicy().next_failure(2, 0)

        assert decision.locks
        assert decision.attempts == 0
        assert decision.lockout_level == 1
        assert decision.lockout_seconds == 120

    def test_second_cycle_escalates(self) -> None:
        decision = CooldownPolicy().next_failure(2, 1)

        assert decision.lockout_level == 2
        assert decision.lockout_seconds == 240

    def test_level_never_decreases(self) -> None:
        policy = CooldownPolicy()
        attempts, level = 0, 0
        levels = []
        for _ in range(12):
            decision = policy.next_failure(attempts, level)
            attempts, level = decision.attempts, decision.lockout_level
            levels.append(level)

        assert levels == sorted(levels)
        assert level == 4

    def test_custom_threshold(self) -> None:
        policy = CooldownPolicy(threshold=5)

        assert not policy.next_failure(3, 0).locks
        assert policy.next_failure(4, 0).locks


class TestDuration:
    """Tests for CooldownPolicy.duration_for."""

    @pytest.mark.parametrize(
        ("level", "expected"),
        [(0, 0), (1, 120), (2, 240), (3, 360), (30, 3600), (100, 3600)],
    )
    def test_capped_duration(self, level: int, expected: int) -> None:
        assert CooldownPolicy().duration_for(level) == expected

    def test_zero_max_disables_cap(self) -> None:
        policy = CooldownPolicy(max_seconds=0)
        assert policy.duration_for(100) == 12000

    def test_from_settings(self, monkeypatch) -> None:
        from cafeauth.app.config import get_settings

        monkeypatch.setenv("SECURITY_LOCKOUT_STEP", "60")
        monkeypatch.setenv("SECURITY_LOCKOUT_MAX", "0")
        get_settings.cache_clear()

        policy = CooldownPolicy.from_settings()

        assert policy.step_seconds == 60
        assert policy.max_seconds == 0
        assert policy.threshold == 3


class TestAttemptsRemaining:
    def test_counts_down_to_zero(self) -> None:
        policy = CooldownPolicy()
        assert [policy.attempts_remaining(a) for a in range(5)] == [3, 2, 1, 0, 0]


class TestCooldownStatus:
    def test_no_lockout(self) -> None:
        assert cooldown_status(0, 1_000_000) == NOT_ON_COOLDOWN

    def test_expired_lockout(self) -> None:
        assert cooldown_status(999_999, 1_000_000) == NOT_ON_COOLDOWN

    def test_remaining_rounds_up(self) -> None:
        status = cooldown_status(1_000_000 + 119_001, 1_000_000)

        assert status.on_cooldown
        assert status.remaining_seconds == 120
