"""
Expected, user-facing failure conditions of the bot-defense layer.

None of these indicate a fault in the service.  The HTTP layer renders each
one with its ``status_code`` and a localized message looked up by ``code``.
"""

from __future__ import annotations

from typing import Dict, Optional


class ShieldError(Exception):
    code = "shield_error"
    status_code = 400

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code

    def headers(self) -> Dict[str, str]:
        return {}

    def payload(self) -> Dict[str, object]:
        return {}


class ChallengeError(ShieldError):
    code = "invalid_or_expired_captcha"
    status_code = 400
    reason = "invalid"


class ChallengeNotFound(ChallengeError):
    reason = "not_found"


class ChallengeExpired(ChallengeError):
    reason = "expired"


class ChallengeAnswerMismatch(ChallengeError):
    reason = "answer_mismatch"


class RateLimitExceeded(ShieldError):
    code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, retry_after: int, risk_level: str = "low", detail: Optional[str] = None) -> None:
        super().__init__(detail)
        self.retry_after = max(0, int(retry_after))
        self.risk_level = risk_level

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)} if self.retry_after else {}

    def payload(self) -> Dict[str, object]:
        return {"retry_after": self.retry_after, "risk_level": self.risk_level}


class IPBlocked(ShieldError):
    code = "ip_blocked"
    status_code = 403

    def __init__(self, remaining_seconds: int, risk_score: int, detail: Optional[str] = None) -> None:
        super().__init__(detail)
        self.remaining_seconds = max(0, int(remaining_seconds))
        self.risk_score = risk_score

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.remaining_seconds)}

    def payload(self) -> Dict[str, object]:
        return {"remaining_seconds": self.remaining_seconds, "risk_score": self.risk_score}


class InternalError(ShieldError):
    code = "internal_error"
    status_code = 500


__all__ = [
    "ShieldError",
    "ChallengeError",
    "ChallengeNotFound",
    "ChallengeExpired",
    "ChallengeAnswerMismatch",
    "RateLimitExceeded",
    "IPBlocked",
    "InternalError",
]
