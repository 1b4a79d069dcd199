from __future__ import annotations

import asyncio
from typing import Optional

from portal_guard.security.defense import BotDefense
from portal_guard.security.logger import security_logger as logger


class Sweeper:
    """Background loop that expires challenges and evicts cold IP profiles.

    Challenges and profiles are swept on independent periods.  Each sweep
    takes the owning store's lock, so it cannot interleave with a validation
    in flight.
    """

    def __init__(self, defense: BotDefense) -> None:
        self.defense = defense
        self._task: Optional[asyncio.Task[None]] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        settings = self.defense.settings
        challenge_every = max(1.0, float(settings.captcha_sweep_interval_seconds))
        profile_every = max(1.0, float(settings.profile_sweep_interval_seconds))
        tick = min(challenge_every, profile_every)
        since_challenges = since_profiles = 0.0

        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=tick)
                return
            except asyncio.TimeoutError:
                pass

            since_challenges += tick
            since_profiles += tick
            try:
                if since_challenges >= challenge_every:
                    self.defense.sweep_challenges()
                    since_challenges = 0.0
                if since_profiles >= profile_every:
                    self.defense.sweep_profiles()
                    since_profiles = 0.0
            except Exception as e:  # keep the loop alive; next tick retries
                logger.error(f"Sweeper iteration failed: {e}", exc_info=True)


__all__ = ["Sweeper"]
