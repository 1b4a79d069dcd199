from __future__ import annotations

from typing import Tuple

from portal_guard.security.logger import security_logger as logger
from portal_guard.security.risk import IPRiskProfile

MINUTE = 60
HOUR = 60 * MINUTE

BLOCK_SHORT = 5 * MINUTE
BLOCK_MEDIUM = 30 * MINUTE
BLOCK_LONG = 2 * HOUR
BLOCK_EXTENDED = 24 * HOUR

# (min violations, min score, duration), longest first
BLOCK_TIERS: Tuple[Tuple[int, int, int], ...] = (
    (5, 80, BLOCK_EXTENDED),
    (3, 60, BLOCK_LONG),
    (2, 40, BLOCK_MEDIUM),
)


def block_duration(security_violations: int, risk_score: int) -> int:
    for min_violations, min_score, duration in BLOCK_TIERS:
        if security_violations >= min_violations or risk_score >= min_score:
            return duration
    return BLOCK_SHORT


class ProgressiveBlocker:
    """Unblocked <-> Blocked(expiry) transitions for a risk profile."""

    def __init__(self, risk_threshold: int = 60, failed_attempts_threshold: int = 5, unblock_decay: int = 20) -> None:
        self.risk_threshold = risk_threshold
        self.failed_attempts_threshold = failed_attempts_threshold
        self.unblock_decay = unblock_decay

    def should_block(self, profile: IPRiskProfile) -> bool:
        return (
            profile.risk_score >= self.risk_threshold
            or profile.failed_attempts >= self.failed_attempts_threshold
        )

    def block(self, profile: IPRiskProfile, now: float, reason: str) -> float:
        """Enter (or extend) a block and return its expiry; an existing block is never shortened."""
        duration = block_duration(profile.security_violations, profile.risk_score)
        expires = now + duration
        profile.last_violation = now

        if self.is_blocked(profile, now):
            if profile.block_expires is None or expires > profile.block_expires:
                profile.block_expires = expires
                logger.warning(f"Block for IP {profile.ip} extended to {duration // MINUTE} minutes (reason: {reason})")
            return profile.block_expires

        profile.is_blocked = True
        profile.block_expires = expires
        profile.security_violations += 1
        # failure streak restarts once a block starts
        profile.failed_attempts = 0
        logger.warning(f"IP {profile.ip} blocked for {duration // MINUTE} minutes (reason: {reason})")
        return expires

    def is_blocked(self, profile: IPRiskProfile, now: float) -> bool:
        """Report block state, lifting an expired block (with score decay) as a side effect."""
        if not profile.is_blocked:
            return False
        if profile.block_expires is not None and now < profile.block_expires:
            return True

        profile.is_blocked = False
        profile.block_expires = None
        profile.risk_score = max(0, profile.risk_score - self.unblock_decay)
        logger.info(f"IP {profile.ip} unblocked, risk score reduced to {profile.risk_score}")
        return False


__all__ = [
    "BLOCK_EXTENDED",
    "BLOCK_LONG",
    "BLOCK_MEDIUM",
    "BLOCK_SHORT",
    "BLOCK_TIERS",
    "ProgressiveBlocker",
    "block_duration",
]
