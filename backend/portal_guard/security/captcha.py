"""
Arithmetic CAPTCHA challenges.

Difficulty tiers 1-5 shape the question:

1. ``a + b`` with operands 1-20
2. ``a + b`` or ``a - b`` (coin flip), ``a`` 10-59 and ``b`` 1-9 so the
   difference is never negative
3. ``a × b`` with operands 2-13
4. ``(a + b) × c``
5. ``a ÷ b + c × d`` where ``a`` is built as a multiple of ``b`` so the
   division is exact; conventional precedence applies

Answers are stored as base-10 integer strings and compared after trimming the
submitted value.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from portal_guard.security.challenge_store import Challenge, ChallengeStore
from portal_guard.security.errors import (
    ChallengeAnswerMismatch,
    ChallengeError,
    ChallengeExpired,
    ChallengeNotFound,
    InternalError,
)
from portal_guard.security.logger import security_logger as logger

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MAX_ID_LENGTH = 128
MAX_ANSWER_LENGTH = 32

AUTOMATION_AGENTS: Tuple[str, ...] = (
    "curl",
    "wget",
    "python",
    "bot",
    "crawler",
    "scanner",
    "postman",
    "insomnia",
    "httpie",
    "requests",
)
MIN_USER_AGENT_LENGTH = 10

_rng = secrets.SystemRandom()


def _between(low: int, high: int) -> int:
    return _rng.randint(low, high)


def _tier_1() -> Tuple[str, int]:
    a, b = _between(1, 20), _between(1, 20)
    return f"{a} + {b} = ?", a + b


def _tier_2() -> Tuple[str, int]:
    a, b = _between(10, 59), _between(1, 9)
    if _rng.random() < 0.5:
        return f"{a} + {b} = ?", a + b
    return f"{a} - {b} = ?", a - b


def _tier_3() -> Tuple[str, int]:
    a, b = _between(2, 13), _between(2, 13)
    return f"{a} × {b} = ?", a * b


def _tier_4() -> Tuple[str, int]:
    a, b, c = _between(1, 10), _between(1, 10), _between(2, 6)
    return f"({a} + {b}) × {c} = ?", (a + b) * c


def _tier_5() -> Tuple[str, int]:
    divisor = _rng.choice((2, 3, 4, 5))
    quotient = _between(2, 12)
    dividend = divisor * quotient
    c, d = _between(2, 6), _between(2, 6)
    return f"{dividend} ÷ {divisor} + {c} × {d} = ?", quotient + c * d


_BUILDERS: Dict[int, Callable[[], Tuple[str, int]]] = {
    1: _tier_1,
    2: _tier_2,
    3: _tier_3,
    4: _tier_4,
    5: _tier_5,
}


def clamp_difficulty(difficulty: int) -> int:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(difficulty)))


def _new_challenge_id() -> str:
    try:
        return secrets.token_hex(16)
    except (OSError, NotImplementedError) as exc:
        raise InternalError("entropy source unavailable") from exc


@dataclass(frozen=True)
class IssuedChallenge:
    """What the caller may see of a challenge; the answer stays in the store."""

    id: str
    question: str
    difficulty: int


class ChallengeGenerator:
    def __init__(self, store: ChallengeStore) -> None:
        self.store = store

    def issue(self, difficulty: int = 1) -> IssuedChallenge:
        tier = clamp_difficulty(difficulty)
        question, answer = _BUILDERS[tier]()
        challenge = Challenge(
            id=_new_challenge_id(),
            question=question,
            answer=str(answer),
            created_at=self.store._now(),
            difficulty=tier,
        )
        self.store.add(challenge)
        logger.info(f"CAPTCHA issued id={challenge.id[:8]}... difficulty={tier}")
        return IssuedChallenge(id=challenge.id, question=question, difficulty=tier)


@dataclass(frozen=True)
class RequestSignals:
    user_agent: Optional[str] = None
    recent_request_count: int = 0


def classify(signals: RequestSignals, elevated_request_count: int = 10) -> int:
    """Pick a difficulty tier; the most severe signal is checked first."""
    user_agent = (signals.user_agent or "").strip()
    lowered = user_agent.lower()
    for pattern in AUTOMATION_AGENTS:
        if pattern in lowered:
            return 5
    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        return 4
    if signals.recent_request_count > elevated_request_count:
        return 3
    return 1


def matches_automation_agent(user_agent: Optional[str], patterns: Sequence[str] = AUTOMATION_AGENTS) -> bool:
    lowered = (user_agent or "").lower()
    return any(p in lowered for p in patterns)


class ChallengeValidator:
    def __init__(self, store: ChallengeStore) -> None:
        self.store = store

    def verify(self, challenge_id: object, answer: object) -> None:
        """
        Check ``answer`` against the stored challenge.

        Raises ``ChallengeNotFound``, ``ChallengeExpired`` or
        ``ChallengeAnswerMismatch``.  A correct answer consumes the challenge.
        The attempt counter is bumped before any ceiling check, so the failed
        attempt that reaches the ceiling is the one that deletes the challenge.
        """
        if not isinstance(challenge_id, str) or not isinstance(answer, str):
            raise ChallengeNotFound("missing or malformed id/answer")
        if not challenge_id or not answer or len(challenge_id) > MAX_ID_LENGTH:
            raise ChallengeNotFound("missing or malformed id/answer")

        store = self.store
        with store.lock:
            challenge = store.peek(challenge_id)
            if challenge is None:
                raise ChallengeNotFound("unknown challenge id")

            challenge.attempts += 1
            if challenge.attempts > store.max_attempts:
                store.delete(challenge_id)
                raise ChallengeExpired("attempt ceiling exceeded")
            if challenge.age(store._now()) > store.ttl_seconds:
                store.delete(challenge_id)
                raise ChallengeExpired("challenge too old")

            submitted = answer.strip()
            # stored answers are ASCII digits, so non-ASCII input can never match
            if (
                submitted.isascii()
                and len(submitted) <= MAX_ANSWER_LENGTH
                and secrets.compare_digest(submitted, challenge.answer)
            ):
                store.delete(challenge_id)
                return

            if challenge.attempts >= store.max_attempts:
                store.delete(challenge_id)
            raise ChallengeAnswerMismatch("wrong answer")

    def validate(self, challenge_id: object, answer: object) -> bool:
        try:
            self.verify(challenge_id, answer)
        except ChallengeError as exc:
            short_id = challenge_id[:8] if isinstance(challenge_id, str) and challenge_id.isascii() else "-"
            logger.warning(f"CAPTCHA rejected id={short_id}... reason={exc.reason}")
            return False
        return True


__all__ = [
    "AUTOMATION_AGENTS",
    "ChallengeGenerator",
    "ChallengeValidator",
    "IssuedChallenge",
    "RequestSignals",
    "classify",
    "clamp_difficulty",
    "matches_automation_agent",
]
