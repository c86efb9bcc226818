from __future__ import annotations

import posixpath
from datetime import datetime

import pytest

from services.log_embed_builder import EventSink
from services.log_parsers import LineClassifier
from services.remote_files import (
    RemoteFile,
    RemoteLogTransport,
    TransportConnectionError,
    TransportError,
)
from services.state_store import EngineState, StateStore, StateStoreError

FIXED_NOW = datetime(2024, 6, 1, 23, 0, 0)


class InMemoryTransport(RemoteLogTransport):
    """Remote host whose files live in a dict keyed by full path."""

    def __init__(self, files: dict[str, bytes] | None = None):
        super().__init__("test-host", 21, "user", "secret")
        self.files = dict(files or {})
        self.fail_connect = False
        self.fail_list = False
        self.fail_reads: set[str] = set()
        self.reads: list[tuple[str, int]] = []
        self.connects = 0
        self.disconnects = 0

    def write(self, path: str, data: bytes):
        self.files[path] = data

    def append(self, path: str, data: bytes):
        self.files[path] = self.files.get(path, b"") + data

    async def connect(self):
        self.connects += 1
        if self.fail_connect:
            raise TransportConnectionError("connection refused")

    async def disconnect(self):
        self.disconnects += 1

    async def list_files(self, directory: str) -> list[RemoteFile]:
        if self.fail_list:
            raise TransportError("listing failed")
        directory = directory.rstrip("/") or "/"
        return [
            RemoteFile(name=posixpath.basename(path), size=len(data))
            for path, data in self.files.items()
            if (posixpath.dirname(path) or "/") == directory
        ]

    async def read_range(self, path: str, offset: int) -> bytes:
        self.reads.append((path, offset))
        if path in self.fail_reads:
            raise TransportError(f"read failed: {path}")
        if path not in self.files:
            raise TransportError(f"no such file: {path}")
        return self.files[path][offset:]


class RecordingSink(EventSink):
    """Keeps every delivered event; can be told to fail."""

    def __init__(self):
        self.events = []
        self.fail = False

    async def deliver(self, event) -> bool:
        if self.fail:
            return False
        self.events.append(event)
        return True


class MemoryStateStore(StateStore):
    """Stores serialized snapshots so tests can see what was persisted."""

    def __init__(self, initial: dict | None = None):
        self.snapshots: list[dict] = []
        self.initial = initial
        self.fail = False

    def load(self):
        if self.initial is None:
            return None
        return EngineState.from_dict(self.initial)

    def save(self, state: EngineState):
        if self.fail:
            raise StateStoreError("disk full")
        self.snapshots.append(state.to_dict())

    @property
    def last(self) -> dict | None:
        return self.snapshots[-1] if self.snapshots else None


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def classifier() -> LineClassifier:
    return LineClassifier(clock=lambda: FIXED_NOW)


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()
