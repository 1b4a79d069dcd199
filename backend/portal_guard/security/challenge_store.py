from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

Clock = Callable[[], float]


@dataclass
class Challenge:
    id: str
    question: str
    answer: str
    created_at: float
    difficulty: int
    attempts: int = 0

    def age(self, now: float) -> float:
        return now - self.created_at


class ChallengeStore:
    """In-memory store of outstanding CAPTCHA challenges keyed by id.

    ``lock`` is the single mutation point: the validator and the sweeper hold
    it for the whole read-modify-delete sequence on a challenge.
    """

    def __init__(self, ttl_seconds: int = 600, max_attempts: int = 3, clock: Optional[Clock] = None) -> None:
        self._store: Dict[str, Challenge] = {}
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.lock = threading.RLock()
        self._clock = clock or time.time

    def _now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, challenge_id: str) -> bool:
        return challenge_id in self._store

    def is_expired(self, challenge: Challenge, now: Optional[float] = None) -> bool:
        now = self._now() if now is None else now
        return challenge.age(now) > self.ttl_seconds or challenge.attempts >= self.max_attempts

    def add(self, challenge: Challenge) -> None:
        with self.lock:
            if challenge.id in self._store:
                raise KeyError(f"duplicate challenge id {challenge.id}")
            self._store[challenge.id] = challenge

    def get(self, challenge_id: str) -> Optional[Challenge]:
        """Return the live challenge or ``None``; aged-out entries are dropped on access."""
        with self.lock:
            challenge = self._store.get(challenge_id)
            if challenge is None:
                return None
            if challenge.age(self._now()) > self.ttl_seconds:
                del self._store[challenge_id]
                return None
            return challenge

    def peek(self, challenge_id: str) -> Optional[Challenge]:
        return self._store.get(challenge_id)

    def delete(self, challenge_id: str) -> None:
        with self.lock:
            self._store.pop(challenge_id, None)

    def sweep(self) -> int:
        """Drop challenges past their TTL or attempt ceiling; return how many were removed."""
        with self.lock:
            now = self._now()
            expired = [cid for cid, ch in self._store.items() if self.is_expired(ch, now)]
            for cid in expired:
                del self._store[cid]
            return len(expired)


__all__ = ["Challenge", "ChallengeStore", "Clock"]
