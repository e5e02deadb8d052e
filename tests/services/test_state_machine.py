"""Tests for lockout state transitions."""

from datetime import UTC, datetime, timedelta

import pytest

from lockout.core.exceptions import InvalidConfigurationError
from lockout.services import state_machine
from lockout.services.state_machine import (
    TOO_MANY_ATTEMPTS,
    LockoutPolicy,
    LockoutRecord,
    Outcome,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
POLICY = LockoutPolicy(max_attempts=3, lock_duration=timedelta(minutes=15))


def fail(record, times, now=NOW, policy=POLICY):
    outcome = None
    for _ in range(times):
        record, outcome = state_machine.record_failure(record, now, policy)
    return record, outcome


class TestLockoutPolicy:
    """Tests for policy validation."""

    @pytest.mark.parametrize("max_attempts", [0, -1])
    def test_rejects_non_positive_max_attempts(self, max_attempts):
        with pytest.raises(InvalidConfigurationError):
            LockoutPolicy(max_attempts=max_attempts)

    def test_rejects_non_positive_durations(self):
        with pytest.raises(InvalidConfigurationError):
            LockoutPolicy(lock_duration=timedelta(0))
        with pytest.raises(InvalidConfigurationError):
            LockoutPolicy(decay_window=timedelta(seconds=-1))

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            LockoutPolicy(max_attempts=0)


class TestRecordFailure:
    """Tests for failed attempt transitions."""

    def test_counts_below_threshold(self):
        record, outcome = fail(LockoutRecord("email|a@b.com"), 2)

        assert outcome == Outcome.ATTEMPT_RECORDED
        assert record.attempts == 2
        assert record.last_failed_at == NOW
        assert not record.is_locked(NOW)

    def test_locks_at_threshold(self):
        record, outcome = fail(LockoutRecord("email|a@b.com"), 3)

        assert outcome == Outcome.BECAME_LOCKED
        assert record.is_locked(NOW)
        assert record.locked_at == NOW
        assert record.lock_expires_at == NOW + timedelta(minutes=15)
        assert record.reason == TOO_MANY_ATTEMPTS
        assert record.metadata["max_attempts"] == 3

    def test_attempts_reset_when_lock_applied(self):
        record, _ = fail(LockoutRecord("email|a@b.com"), 3)

        assert record.attempts == 0

    def test_single_attempt_policy_locks_immediately(self):
        policy = LockoutPolicy(max_attempts=1)
        record, outcome = state_machine.record_failure(LockoutRecord("ip|10.0.0.1"), NOW, policy)

        assert outcome == Outcome.BECAME_LOCKED
        assert record.is_locked(NOW)

    def test_failure_while_locked_changes_nothing(self):
        locked, _ = fail(LockoutRecord("email|a@b.com"), 3)
        later = NOW + timedelta(minutes=5)

        record, outcome = state_machine.record_failure(locked, later, POLICY)

        assert outcome == Outcome.ALREADY_LOCKED
        assert record is locked
        assert record.lock_expires_at == NOW + timedelta(minutes=15)

    def test_failure_after_expiry_starts_fresh_counter(self):
        locked, _ = fail(LockoutRecord("email|a@b.com"), 3)
        after = NOW + timedelta(minutes=15)

        record, outcome = state_machine.record_failure(locked, after, POLICY)

        assert outcome == Outcome.ATTEMPT_RECORDED
        assert record.attempts == 1
        assert record.locked_at is None
        assert record.reason is None

    def test_indefinite_lock_never_expires(self):
        policy = LockoutPolicy(max_attempts=2, lock_duration=None)
        record, _ = fail(LockoutRecord("email|a@b.com"), 2, policy=policy)

        assert record.lock_expires_at is None
        assert record.is_locked(NOW + timedelta(days=365))
        assert record.seconds_until_unlock(NOW) is None

    def test_decay_window_resets_stale_counter(self):
        policy = LockoutPolicy(max_attempts=3, decay_window=timedelta(minutes=1))
        record, _ = fail(LockoutRecord("email|a@b.com"), 2, policy=policy)

        record, outcome = state_machine.record_failure(
            record, NOW + timedelta(minutes=1), policy
        )

        assert outcome == Outcome.ATTEMPT_RECORDED
        assert record.attempts == 1

    def test_decay_window_keeps_recent_counter(self):
        policy = LockoutPolicy(max_attempts=3, decay_window=timedelta(minutes=1))
        record, _ = fail(LockoutRecord("email|a@b.com"), 2, policy=policy)

        record, outcome = state_machine.record_failure(
            record, NOW + timedelta(seconds=59), policy
        )

        assert outcome == Outcome.BECAME_LOCKED

    def test_merges_metadata_and_user(self):
        record, _ = state_machine.record_failure(
            LockoutRecord("email|a@b.com", metadata={"first": 1}),
            NOW,
            POLICY,
            user_id="42",
            metadata={"ip_address": "10.0.0.1"},
        )

        assert record.user_id == "42"
        assert record.metadata == {"first": 1, "ip_address": "10.0.0.1"}


class TestReset:
    """Tests for the reset transition."""

    def test_reset_clears_counter_and_lock(self):
        locked, _ = fail(LockoutRecord("email|a@b.com"), 3)

        record, outcome = state_machine.reset(locked, NOW)

        assert outcome == Outcome.RESET
        assert record.attempts == 0
        assert record.locked_at is None
        assert record.lock_expires_at is None
        assert not record.is_locked(NOW)

    def test_reset_is_idempotent(self):
        record, _ = fail(LockoutRecord("email|a@b.com"), 2)

        once, first = state_machine.reset(record, NOW)
        twice, second = state_machine.reset(once, NOW)

        assert first == Outcome.RESET
        assert second == Outcome.NO_CHANGE
        assert twice == once


class TestLock:
    """Tests for the explicit lock transition."""

    def test_lock_regardless_of_attempts(self):
        record, outcome = state_machine.lock(
            LockoutRecord("email|a@b.com"), NOW, POLICY, reason="manual"
        )

        assert outcome == Outcome.LOCKED
        assert record.is_locked(NOW)
        assert record.reason == "manual"
        assert record.lock_expires_at == NOW + timedelta(minutes=15)

    def test_lock_keeps_attempt_count(self):
        record, _ = fail(LockoutRecord("email|a@b.com"), 2)

        record, _ = state_machine.lock(record, NOW, POLICY)

        assert record.attempts == 2

    def test_lock_while_locked_does_not_extend(self):
        locked, _ = state_machine.lock(LockoutRecord("email|a@b.com"), NOW, POLICY)

        record, outcome = state_machine.lock(locked, NOW + timedelta(minutes=10), POLICY)

        assert outcome == Outcome.NO_CHANGE
        assert record.lock_expires_at == NOW + timedelta(minutes=15)


class TestUnlock:
    """Tests for the unlock transition."""

    def test_unlock_resets_attempts_by_default(self):
        record, _ = fail(LockoutRecord("email|a@b.com"), 2)
        record, _ = state_machine.lock(record, NOW, POLICY)

        record, outcome = state_machine.unlock(record, NOW)

        assert outcome == Outcome.UNLOCKED
        assert record.attempts == 0
        assert not record.is_locked(NOW)

    def test_unlock_can_keep_attempts(self):
        record, _ = fail(LockoutRecord("email|a@b.com"), 2)
        record, _ = state_machine.lock(record, NOW, POLICY)

        record, outcome = state_machine.unlock(record, NOW, reset_attempts=False)

        assert outcome == Outcome.UNLOCKED
        assert record.attempts == 2
        assert record.locked_at is None

    def test_unlock_open_record_is_no_change(self):
        record = LockoutRecord("email|a@b.com", attempts=1)

        result, outcome = state_machine.unlock(record, NOW)

        assert outcome == Outcome.NO_CHANGE
        assert result is record

    def test_unlock_expired_lock_tidies_without_event(self):
        locked, _ = state_machine.lock(LockoutRecord("email|a@b.com"), NOW, POLICY)

        record, outcome = state_machine.unlock(locked, NOW + timedelta(hours=1))

        assert outcome == Outcome.NO_CHANGE
        assert record.locked_at is None
        assert record.lock_expires_at is None


class TestLockoutRecord:
    """Tests for record queries."""

    def test_seconds_until_unlock_rounds_up(self):
        locked, _ = state_machine.lock(LockoutRecord("email|a@b.com"), NOW, POLICY)

        assert locked.seconds_until_unlock(NOW) == 900
        assert locked.seconds_until_unlock(NOW + timedelta(seconds=0.5)) == 900
        assert locked.seconds_until_unlock(NOW + timedelta(seconds=899, milliseconds=1)) == 1

    def test_seconds_until_unlock_none_when_open(self):
        assert LockoutRecord("email|a@b.com").seconds_until_unlock(NOW) is None

    def test_lock_expires_exactly_at_expiry(self):
        locked, _ = state_machine.lock(LockoutRecord("email|a@b.com"), NOW, POLICY)

        assert locked.is_locked(NOW + timedelta(minutes=15) - timedelta(microseconds=1))
        assert not locked.is_locked(NOW + timedelta(minutes=15))
