"""
Shared fixtures for the chatroom tests.

Every test case gets its own SQLite file in a temporary directory and a
manual clock, so liveness can be tested without sleeping.
"""

import tempfile
import unittest
from pathlib import Path

from chatroom.database import build_engine, build_session_factory, init_db
from chatroom.engine import ChatEngine
from chatroom.settings import Settings

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


def make_settings(**overrides) -> Settings:
    settings = Settings()
    settings.reaper_interval = 3600
    settings.inactivity_threshold = 10
    settings.reaper_item_timeout = 5
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    """Builds a ChatEngine over a fresh database for every test."""

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "chat.db"
        self.db_engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
        await init_db(self.db_engine)
        self.session_factory = build_session_factory(self.db_engine)
        self.clock = FakeClock()
        self.settings = make_settings()
        self.engine = ChatEngine(self.session_factory, self.settings, clock=self.clock)
        self.participants = self.engine.participants
        self.messages = self.engine.messages
        self.reaper = self.engine.reaper

    async def asyncTearDown(self):
        await self.engine.stop()
        await self.db_engine.dispose()
        self._tmp.cleanup()
