import os
import tempfile

# Keep the rotating security log out of the working tree during tests.
os.environ.setdefault(
    "SECURITY_LOG_FILE", os.path.join(tempfile.gettempdir(), "portal_guard_test_security.log")
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from portal_guard.core.limiter import limiter  # noqa: E402
from portal_guard.core.settings import Settings, reload_settings  # noqa: E402
from portal_guard.main import app  # noqa: E402
from portal_guard.security.defense import BotDefense  # noqa: E402

START = 1_760_000_000.0


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = START):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def defense(clock):
    return BotDefense(Settings(), clock=clock)


@pytest.fixture
def client(defense):
    app.state.defense = defense
    limiter.reset()
    yield TestClient(app)
    limiter.reset()


@pytest.fixture
def env(monkeypatch):
    """Patch environment variables; cached settings are rebuilt afterwards."""
    yield monkeypatch
    monkeypatch.undo()
    reload_settings()
