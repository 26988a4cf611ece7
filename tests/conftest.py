"""
Shared pytest fixtures and configuration.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from watchguard.api.app import create_app
from watchguard.clock import Clock
from watchguard.config import Config
from watchguard.enforcement.agents import AgentRegistry
from watchguard.engine import WatchGuardEngine
from watchguard.store import KeyValueStore

# 2026-03-14 12:00:00 UTC
NOON_MS = int(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)


class FakeClock(Clock):
    """Deterministic clock; tests move time with advance()."""

    def __init__(self, start_ms: int = NOON_MS):
        self.ms = start_ms

    def now_ms(self) -> int:
        return self.ms

    def advance(self, seconds: float) -> None:
        self.ms += int(seconds * 1000)


class RecordingSocket:
    """Stands in for an agent's WebSocket; records every command pushed to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    @property
    def actions(self):
        return [m.get("action") for m in self.sent]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(tmp_path):
    return KeyValueStore(tmp_path / "watchguard.db")


@pytest.fixture()
def agents():
    return AgentRegistry(send_timeout_s=0.5)


@pytest_asyncio.fixture()
async def engine(store, agents, clock):
    eng = WatchGuardEngine(store, agents, clock=clock)
    await eng.start()
    return eng


@pytest.fixture()
def connect(agents):
    """connect(surface, fail=False) → RecordingSocket registered as that surface's agent."""
    def _connect(surface: int, fail: bool = False) -> RecordingSocket:
        socket = RecordingSocket(fail=fail)
        agents.register(surface, socket)
        return socket
    return _connect


@pytest.fixture()
def app(tmp_path, clock):
    """Create a fresh app instance per test, backed by a temp store."""
    cfg = Config(data_dir=tmp_path)
    return create_app(cfg=cfg, db_path=tmp_path / "api.db", clock=clock)


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
