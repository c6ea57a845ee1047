"""Shared fixtures for the test suite."""

import asyncio

from alapio.config import Settings
from alapio.infra.database import build_engine, build_session_factory, init_db


def memory_engine():
    """Fresh in-memory SQLite database with all tables created."""
    engine = build_engine("sqlite://", echo=False)
    init_db(engine)
    return engine


def memory_session_factory():
    return build_session_factory(memory_engine())


def make_settings(**overrides) -> Settings:
    settings = Settings()
    settings.database_url = "sqlite://"
    settings.idle_timeout_seconds = 0
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


class FakeWebSocket:
    """
    Stand-in for a FastAPI WebSocket: records what the server sends and
    replays scripted inbound frames.
    """

    def __init__(self, frames=None, hang=False):
        self.sent = []
        self.accepted = False
        self.closed_with = None
        self.fail_sends = False
        self._frames = list(frames or [])
        self._hang = hang

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def receive(self):
        if self._frames:
            return self._frames.pop(0)
        if self._hang:
            await asyncio.Event().wait()
        return {"type": "websocket.disconnect", "code": 1000}

    async def close(self, code=1000):
        self.closed_with = code

    def events(self, name=None):
        return [frame for frame in self.sent if name is None or frame["event"] == name]

    def clear(self):
        self.sent.clear()
