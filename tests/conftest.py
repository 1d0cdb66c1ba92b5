from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from sqlmodel import Session, SQLModel, create_engine

import models.pending_write  # noqa: F401
from core.settings import SyncSettings


class FakeSource:
    """Connectivity source driven by the test."""

    def __init__(self, reachable=True):
        self.reachable = reachable
        self.listeners = set()
        self.started = False

    def is_reachable(self):
        return self.reachable

    def subscribe(self, callback):
        self.listeners.add(callback)

    def unsubscribe(self, callback):
        self.listeners.discard(callback)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    def emit(self, reachable):
        self.reachable = reachable
        for listener in list(self.listeners):
            listener(reachable)


class FakeRemote:
    """Records every call; failures are scripted per LocalId."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.gate = None
        self._next = 0

    async def _maybe_block_or_fail(self, key):
        if self.gate is not None:
            await self.gate.wait()
        error = self.failures.pop(key, None)
        if error is not None:
            raise error

    async def create(self, collection, payload):
        self.calls.append(("create", collection, payload.get("localId"), dict(payload)))
        await self._maybe_block_or_fail(payload.get("localId"))
        self._next += 1
        return f"remote-{self._next}"

    async def update(self, collection, record_id, payload):
        self.calls.append(("update", collection, record_id, dict(payload)))
        await self._maybe_block_or_fail(payload.get("localId"))

    async def delete(self, collection, record_id):
        self.calls.append(("delete", collection, record_id, {}))
        await self._maybe_block_or_fail(record_id)

    def created_names(self):
        return [c[3].get("name") for c in self.calls if c[0] == "create"]


@pytest.fixture()
def fast_settings():
    return SyncSettings(debounce_ms=10, periodic_interval_sec=3600, remote_timeout_sec=0.5)


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def remote():
    return FakeRemote()


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory
