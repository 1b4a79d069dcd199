"""
Bot-defense facade used by the HTTP layer.

One ``BotDefense`` owns the challenge store and the risk-profile store and is
the only thing that mutates them.  The application builds a single instance at
startup and hands it to routes through ``request.app.state.defense``; tests
build their own with a frozen clock.

Request flow::

    begin_request(ip, ua)      -> blocked? reject : count request, score agent
    request_challenge(signals) -> classify tier, issue challenge
    submit_challenge_answer()  -> validate, failures feed the risk scorer
    report_outcome(ip, tag)    -> bump score, block once the policy says so
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple

from portal_guard.core.settings import Settings, get_settings
from portal_guard.security.blocking import ProgressiveBlocker
from portal_guard.security.captcha import (
    ChallengeGenerator,
    ChallengeValidator,
    IssuedChallenge,
    RequestSignals,
    classify,
    matches_automation_agent,
)
from portal_guard.security.challenge_store import ChallengeStore, Clock
from portal_guard.security.errors import IPBlocked
from portal_guard.security.logger import security_logger as logger
from portal_guard.security.risk import IPRiskProfile, RiskProfileStore, RiskScorer

# Narrower than the CAPTCHA tier list: API tools like Postman are only
# escalated at challenge time, not scored on every request.
SUSPICIOUS_AGENTS = ("curl", "wget", "python", "bot", "scanner", "crawler")

HIGH_RISK_SCORE = 60
RECENT_VIOLATION_SECONDS = 60 * 60
TOP_THREATS = 5


@dataclass(frozen=True)
class GateStatus:
    blocked: bool
    risk_score: int
    remaining_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class BotDefense:
    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> None:
        self.settings = settings or get_settings()
        self._clock = clock or time.time
        self.challenges = ChallengeStore(
            ttl_seconds=self.settings.captcha_ttl_seconds,
            max_attempts=self.settings.captcha_max_attempts,
            clock=self._clock,
        )
        self.profiles = RiskProfileStore(clock=self._clock)
        self.generator = ChallengeGenerator(self.challenges)
        self.validator = ChallengeValidator(self.challenges)
        self.scorer = RiskScorer()
        self.blocker = ProgressiveBlocker(
            risk_threshold=self.settings.block_risk_threshold,
            failed_attempts_threshold=self.settings.block_failed_attempts,
            unblock_decay=self.settings.unblock_score_decay,
        )

    def _now(self) -> float:
        return self._clock()

    # ---- Request gate ----
    def _status(self, profile: IPRiskProfile, now: float) -> GateStatus:
        if self.blocker.is_blocked(profile, now):
            return GateStatus(
                blocked=True,
                risk_score=profile.risk_score,
                remaining_seconds=profile.remaining_block_seconds(now),
            )
        return GateStatus(blocked=False, risk_score=profile.risk_score)

    def check_ip_gate(self, ip: str) -> GateStatus:
        with self.profiles.lock:
            profile = self.profiles.get_or_create(ip)
            return self._status(profile, self._now())

    def begin_request(self, ip: str, user_agent: Optional[str] = None) -> GateStatus:
        """Gate an inbound request; a blocked address is reported without touching its profile."""
        with self.profiles.lock:
            now = self._now()
            profile = self.profiles.get_or_create(ip, user_agent)
            status = self._status(profile, now)
            if status.blocked:
                logger.warning(
                    f"Blocked IP {ip} attempted access ({status.remaining_seconds}s remaining)"
                )
                return status

            profile.request_count += 1
            profile.recent_requests.append(now)
            if matches_automation_agent(user_agent, SUSPICIOUS_AGENTS):
                self._bump(profile, "suspicious_user_agent", now)
            return self._status(profile, now)

    def enforce_gate(self, ip: str, user_agent: Optional[str] = None) -> GateStatus:
        status = self.begin_request(ip, user_agent)
        if status.blocked:
            raise IPBlocked(remaining_seconds=status.remaining_seconds or 0, risk_score=status.risk_score)
        return status

    # ---- Risk reporting ----
    def _bump(self, profile: IPRiskProfile, reason: str, now: float) -> None:
        self.scorer.bump(profile, reason)
        if self.blocker.should_block(profile):
            self.blocker.block(profile, now, reason)

    def report_outcome(self, ip: str, reason: str) -> None:
        with self.profiles.lock:
            profile = self.profiles.get_or_create(ip)
            self._bump(profile, reason, self._now())

    def track_failed_attempt(self, ip: str, reason: str) -> None:
        with self.profiles.lock:
            profile = self.profiles.get_or_create(ip)
            profile.failed_attempts += 1
            self._bump(profile, reason, self._now())

    def report_rate_limit(self, ip: str) -> IPRiskProfile:
        with self.profiles.lock:
            profile = self.profiles.get_or_create(ip)
            self._bump(profile, "rapid_requests", self._now())
            logger.warning(f"Rate limit exceeded for IP {ip} (risk: {profile.risk_score})")
            return profile

    # ---- CAPTCHA ----
    def signals_for(self, ip: str, user_agent: Optional[str]) -> RequestSignals:
        with self.profiles.lock:
            profile = self.profiles.get_or_create(ip, user_agent)
            recent = profile.recent_request_count(self._now(), self.settings.recent_request_window_seconds)
        return RequestSignals(user_agent=user_agent, recent_request_count=recent)

    def request_challenge(self, signals: RequestSignals) -> IssuedChallenge:
        difficulty = classify(signals, self.settings.elevated_request_count)
        return self.generator.issue(difficulty)

    def submit_challenge_answer(self, challenge_id: object, answer: object, ip: Optional[str] = None) -> bool:
        valid = self.validator.validate(challenge_id, answer)
        if not valid and ip:
            self.track_failed_attempt(ip, "failed_captcha")
        return valid

    # ---- Monitoring ----
    def profile_snapshot(self, ip: str) -> Optional[Dict[str, object]]:
        with self.profiles.lock:
            profile = self.profiles.get(ip)
            if profile is None:
                return None
            now = self._now()
            self.blocker.is_blocked(profile, now)
            return profile.snapshot(now)

    def security_report(self) -> Dict[str, object]:
        with self.profiles.lock:
            now = self._now()
            blocked = high_risk = recent = 0
            threats: Counter = Counter()
            for profile in self.profiles:
                if self.blocker.is_blocked(profile, now):
                    blocked += 1
                if profile.risk_score >= HIGH_RISK_SCORE:
                    high_risk += 1
                if profile.last_violation is not None and now - profile.last_violation < RECENT_VIOLATION_SECONDS:
                    recent += 1
                threats.update(profile.suspicious_patterns)
            top: List[str] = [tag for tag, _ in threats.most_common(TOP_THREATS)]
            return {
                "total_ips": len(self.profiles),
                "blocked_ips": blocked,
                "high_risk_ips": high_risk,
                "recent_violations": recent,
                "top_threats": top,
                "outstanding_challenges": len(self.challenges),
            }

    # ---- Maintenance ----
    def sweep_challenges(self) -> int:
        removed = self.challenges.sweep()
        if removed:
            logger.info(f"Swept {removed} expired CAPTCHA challenges")
        return removed

    def sweep_profiles(self) -> int:
        with self.profiles.lock:
            now = self._now()
            # lift lapsed blocks first so their profiles become evictable
            for profile in self.profiles:
                self.blocker.is_blocked(profile, now)
            removed = self.profiles.evict_cold(
                self.settings.profile_max_age_seconds,
                self.settings.profile_evict_below_score,
            )
        if removed:
            logger.info(f"Cleaned {removed} expired IP profiles")
        return removed

    def sweep(self) -> Tuple[int, int]:
        return self.sweep_challenges(), self.sweep_profiles()


__all__ = ["BotDefense", "GateStatus", "SUSPICIOUS_AGENTS"]
