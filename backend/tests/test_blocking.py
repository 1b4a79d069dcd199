import pytest

from portal_guard.security.blocking import (
    BLOCK_EXTENDED,
    BLOCK_LONG,
    BLOCK_MEDIUM,
    BLOCK_SHORT,
    ProgressiveBlocker,
    block_duration,
)
from portal_guard.security.risk import IPRiskProfile


@pytest.fixture
def blocker():
    return ProgressiveBlocker(risk_threshold=60, failed_attempts_threshold=5, unblock_decay=20)


def _profile(clock, **kwargs):
    return IPRiskProfile(ip="192.0.2.50", first_seen=clock.now, **kwargs)


@pytest.mark.parametrize(
    "violations, score, expected",
    [
        (0, 0, BLOCK_SHORT),
        (1, 39, BLOCK_SHORT),
        (2, 0, BLOCK_MEDIUM),
        (0, 40, BLOCK_MEDIUM),
        (3, 0, BLOCK_LONG),
        (0, 60, BLOCK_LONG),
        (1, 79, BLOCK_LONG),
        (4, 45, BLOCK_LONG),
        (5, 0, BLOCK_EXTENDED),
        (0, 80, BLOCK_EXTENDED),
    ],
)
def test_block_duration_tiers(violations, score, expected):
    assert block_duration(violations, score) == expected


def test_durations():
    assert (BLOCK_SHORT, BLOCK_MEDIUM, BLOCK_LONG, BLOCK_EXTENDED) == (300, 1800, 7200, 86400)


def test_should_block(blocker, clock):
    assert blocker.should_block(_profile(clock, risk_score=59)) is False
    assert blocker.should_block(_profile(clock, risk_score=60)) is True
    assert blocker.should_block(_profile(clock, failed_attempts=5)) is True


def test_block_sets_expiry_and_counts_violation(blocker, clock):
    profile = _profile(clock, risk_score=45, failed_attempts=5)
    expires = blocker.block(profile, clock.now, "test")
    assert expires == clock.now + BLOCK_MEDIUM
    assert profile.is_blocked is True
    assert profile.block_expires == expires
    assert profile.security_violations == 1
    assert profile.failed_attempts == 0
    assert profile.last_violation == clock.now


def test_reentrant_block_never_shortens(blocker, clock):
    profile = _profile(clock, risk_score=85)
    long_expiry = blocker.block(profile, clock.now, "first")
    assert long_expiry == clock.now + BLOCK_EXTENDED

    profile.risk_score = 0
    clock.advance(60)
    assert blocker.block(profile, clock.now, "again") == long_expiry
    assert profile.security_violations == 1


def test_reentrant_block_can_extend(blocker, clock):
    profile = _profile(clock)
    blocker.block(profile, clock.now, "first")
    assert profile.block_expires == clock.now + BLOCK_SHORT

    profile.risk_score = 90
    blocker.block(profile, clock.now, "escalated")
    assert profile.block_expires == clock.now + BLOCK_EXTENDED
    assert profile.security_violations == 1


def test_expired_block_lifts_with_decay(blocker, clock):
    profile = _profile(clock, risk_score=70)
    expires = blocker.block(profile, clock.now, "test")

    clock.now = expires - 1
    assert blocker.is_blocked(profile, clock.now) is True
    assert profile.risk_score == 70

    clock.now = expires
    assert blocker.is_blocked(profile, clock.now) is False
    assert profile.block_expires is None
    assert profile.risk_score == 50
    # decay applies once per unblock, not per check
    assert blocker.is_blocked(profile, clock.now) is False
    assert profile.risk_score == 50


def test_decay_floors_at_zero(blocker, clock):
    profile = _profile(clock, risk_score=10)
    blocker.block(profile, clock.now, "test")
    clock.advance(BLOCK_SHORT)
    assert blocker.is_blocked(profile, clock.now) is False
    assert profile.risk_score == 0


def test_second_block_escalates_by_violations(blocker, clock):
    profile = _profile(clock)
    for expected in (BLOCK_SHORT, BLOCK_SHORT, BLOCK_MEDIUM, BLOCK_LONG):
        expires = blocker.block(profile, clock.now, "repeat")
        assert expires - clock.now == expected
        clock.now = expires
        blocker.is_blocked(profile, clock.now)
    assert profile.security_violations == 4
