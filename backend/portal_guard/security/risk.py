from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List, Optional, Set

from portal_guard.security.challenge_store import Clock
from portal_guard.security.logger import security_logger as logger

MAX_RISK_SCORE = 100
DEFAULT_RISK_POINTS = 5

RISK_FACTORS: Dict[str, int] = {
    "rapid_requests": 10,
    "failed_captcha": 15,
    "security_violation": 25,
    "suspicious_user_agent": 20,
    "form_spam": 30,
    "multiple_violations": 40,
}


def risk_points(reason: str) -> int:
    return RISK_FACTORS.get(reason, DEFAULT_RISK_POINTS)


def risk_level(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


@dataclass
class IPRiskProfile:
    ip: str
    first_seen: float
    request_count: int = 0
    failed_attempts: int = 0
    security_violations: int = 0
    risk_score: int = 0
    is_blocked: bool = False
    block_expires: Optional[float] = None
    last_violation: Optional[float] = None
    user_agent: str = ""
    suspicious_patterns: Set[str] = field(default_factory=set)
    recent_requests: Deque[float] = field(default_factory=lambda: deque(maxlen=256))

    def recent_request_count(self, now: float, window_seconds: int) -> int:
        while self.recent_requests and now - self.recent_requests[0] > window_seconds:
            self.recent_requests.popleft()
        return len(self.recent_requests)

    def remaining_block_seconds(self, now: float) -> int:
        if not self.is_blocked or self.block_expires is None:
            return 0
        return max(0, math.ceil(self.block_expires - now))

    def snapshot(self, now: float) -> Dict[str, object]:
        return {
            "ip": self.ip,
            "request_count": self.request_count,
            "failed_attempts": self.failed_attempts,
            "security_violations": self.security_violations,
            "risk_score": self.risk_score,
            "risk_level": risk_level(self.risk_score),
            "is_blocked": self.is_blocked,
            "block_expires": self.block_expires,
            "remaining_seconds": self.remaining_block_seconds(now),
            "first_seen": self.first_seen,
            "last_violation": self.last_violation,
            "suspicious_patterns": sorted(self.suspicious_patterns),
        }


class RiskProfileStore:
    """In-memory per-address risk profiles, created lazily on first sight."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._profiles: Dict[str, IPRiskProfile] = {}
        self.lock = threading.RLock()
        self._clock = clock or time.time

    def _now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[IPRiskProfile]:
        return iter(list(self._profiles.values()))

    def get(self, ip: str) -> Optional[IPRiskProfile]:
        return self._profiles.get(ip)

    def get_or_create(self, ip: str, user_agent: Optional[str] = None) -> IPRiskProfile:
        with self.lock:
            profile = self._profiles.get(ip)
            if profile is None:
                profile = IPRiskProfile(ip=ip, first_seen=self._now(), user_agent=user_agent or "")
                self._profiles[ip] = profile
            elif user_agent:
                profile.user_agent = user_agent
            return profile

    def evict_cold(self, max_age_seconds: int, below_score: int) -> int:
        """Drop unblocked, low-risk profiles older than ``max_age_seconds``."""
        with self.lock:
            now = self._now()
            cold: List[str] = [
                ip
                for ip, p in self._profiles.items()
                if now - p.first_seen > max_age_seconds and p.risk_score < below_score and not p.is_blocked
            ]
            for ip in cold:
                del self._profiles[ip]
            return len(cold)


class RiskScorer:
    def bump(self, profile: IPRiskProfile, reason: str) -> int:
        """Add the points for ``reason`` (saturating at 100) and tag the profile."""
        profile.risk_score = min(MAX_RISK_SCORE, max(0, profile.risk_score + risk_points(reason)))
        profile.suspicious_patterns.add(reason)
        logger.warning(f"Risk score for IP {profile.ip} increased to {profile.risk_score} (reason: {reason})")
        return profile.risk_score


__all__ = [
    "DEFAULT_RISK_POINTS",
    "IPRiskProfile",
    "MAX_RISK_SCORE",
    "RISK_FACTORS",
    "RiskProfileStore",
    "RiskScorer",
    "risk_level",
    "risk_points",
]
