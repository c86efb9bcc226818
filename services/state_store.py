"""
Persisted watcher state.

EngineState is a plain owned structure (file offsets, whitelist baselines and
the bootstrap flag). Stores load it once at startup and rewrite it wholesale
after every mutation.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import mysql.connector

from database.connection import configure_pool
from database.queries import EngineStateQueries

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """State could not be persisted."""
    pass


@dataclass
class FileState:
    """Read progress for one remote log file."""
    offset: int = 0  # bytes [0, offset) already processed
    updated_at: float = field(default_factory=time.time)


@dataclass
class WhitelistState:
    """Last seen membership of one whitelist file."""
    content_hash: str
    entries: list[str] = field(default_factory=list)
    updated_at: float = field(default_factory=time.time)


@dataclass
class EngineState:
    """Everything the watcher remembers between restarts."""
    files: dict[str, FileState] = field(default_factory=dict)
    whitelists: dict[str, WhitelistState] = field(default_factory=dict)
    bootstrapped: bool = False

    def to_dict(self) -> dict:
        return {
            'files': {
                path: {'offset': state.offset, 'updatedAt': state.updated_at}
                for path, state in self.files.items()
            },
            'whitelists': {
                path: {
                    'hash': state.content_hash,
                    'entries': list(state.entries),
                    'updatedAt': state.updated_at,
                }
                for path, state in self.whitelists.items()
            },
            'bootstrapped': self.bootstrapped,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'EngineState':
        """Rebuild state from a stored blob. Malformed entries are skipped."""
        state = cls()
        if not isinstance(data, dict):
            return state

        files = data.get('files')
        if isinstance(files, dict):
            for path, entry in files.items():
                try:
                    offset = int(entry['offset'])
                    updated_at = float(entry.get('updatedAt') or time.time())
                except (TypeError, KeyError, ValueError, AttributeError):
                    logger.warning(f"Skipping malformed file state for {path}")
                    continue
                if offset < 0:
                    logger.warning(f"Skipping negative offset for {path}")
                    continue
                state.files[path] = FileState(offset=offset, updated_at=updated_at)

        whitelists = data.get('whitelists')
        if isinstance(whitelists, dict):
            for path, entry in whitelists.items():
                try:
                    content_hash = str(entry['hash'])
                    entries = [str(item) for item in entry.get('entries') or []]
                    updated_at = float(entry.get('updatedAt') or time.time())
                except (TypeError, KeyError, ValueError, AttributeError):
                    logger.warning(f"Skipping malformed whitelist state for {path}")
                    continue
                state.whitelists[path] = WhitelistState(
                    content_hash=content_hash, entries=entries, updated_at=updated_at
                )

        state.bootstrapped = data.get('bootstrapped') is True
        return state

    def reset(self):
        """Forget all offsets and baselines; the next tick bootstraps again."""
        self.files.clear()
        self.whitelists.clear()
        self.bootstrapped = False


class StateStore(ABC):
    """Load/save pair for EngineState."""

    @abstractmethod
    def load(self) -> Optional[EngineState]:
        """Stored state, or None if nothing has been saved yet."""

    @abstractmethod
    def save(self, state: EngineState):
        """Persist the full state. Raises StateStoreError on failure."""


class JsonStateStore(StateStore):
    """State kept in a local JSON file, replaced atomically on save."""

    def __init__(self, path: str = 'data/state.json'):
        self.path = Path(path)

    def load(self) -> Optional[EngineState]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read state file {self.path}: {e}")
            return None
        return EngineState.from_dict(data)

    def save(self, state: EngineState):
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(state.to_dict(), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self.path}: {e}") from e


class MySQLStateStore(StateStore):
    """State kept as one JSON blob row in MySQL."""

    def __init__(self, state_key: str = 'default'):
        self.state_key = state_key

    def load(self) -> Optional[EngineState]:
        try:
            EngineStateQueries.ensure_table()
            blob = EngineStateQueries.get_state(self.state_key)
        except mysql.connector.Error as e:
            logger.error(f"Failed to load state from database: {e}")
            return None

        if blob is None:
            return None
        try:
            return EngineState.from_dict(json.loads(blob))
        except ValueError as e:
            logger.error(f"Stored state is not valid JSON: {e}")
            return None

    def save(self, state: EngineState):
        try:
            EngineStateQueries.save_state(self.state_key, json.dumps(state.to_dict()))
        except mysql.connector.Error as e:
            raise StateStoreError(f"Failed to save state to database: {e}") from e


def create_state_store(settings) -> StateStore:
    """Pick the backend named by STATE_BACKEND."""
    if settings.state_backend == 'mysql':
        configure_pool(settings.database)
        return MySQLStateStore()
    return JsonStateStore(settings.state_file)
