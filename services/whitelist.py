"""
Whitelist file diffing.

Whitelist-style files are small snapshots (one entry per line) where only
membership changes matter, so they are fetched whole and compared against the
last stored baseline instead of being tailed.
"""

import hashlib
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from services.log_events import WhitelistUpdateEvent
from services.state_store import EngineState, StateStore, StateStoreError, WhitelistState

logger = logging.getLogger(__name__)

COMMENT_MARKER = '#'


def parse_entries(content: str) -> list[str]:
    """Trimmed, non-empty, non-comment lines in file order."""
    entries = []
    for line in content.splitlines():
        entry = line.strip()
        if entry and not entry.startswith(COMMENT_MARKER):
            entries.append(entry)
    return entries


def content_hash(content: str) -> str:
    return hashlib.sha1(content.encode('utf-8')).hexdigest()


class WhitelistDiffer:
    """Compares whitelist files against their stored baselines."""

    def __init__(self, state: EngineState, store: Optional[StateStore] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.state = state
        self.store = store
        self._clock = clock

    def diff(self, path: str, content: str) -> Optional[WhitelistUpdateEvent]:
        """
        Compare content with the stored baseline for path.

        The first sighting only records a baseline. Returns an event only when
        entries were actually added or removed.
        """
        digest = content_hash(content)
        entries = parse_entries(content)
        previous = self.state.whitelists.get(path)

        if previous is not None and previous.content_hash == digest:
            return None

        self.state.whitelists[path] = WhitelistState(
            content_hash=digest, entries=entries, updated_at=time.time()
        )
        self._save()

        if previous is None:
            logger.info(f"Whitelist baseline recorded for {path} ({len(entries)} entries)")
            return None

        previous_entries = set(previous.entries)
        current_entries = set(entries)
        added = tuple(entry for entry in dict.fromkeys(entries) if entry not in previous_entries)
        removed = tuple(entry for entry in dict.fromkeys(previous.entries) if entry not in current_entries)

        if not added and not removed:
            logger.debug(f"Whitelist {path} changed without membership changes")
            return None

        logger.info(f"Whitelist {path}: +{len(added)} / -{len(removed)}")
        return WhitelistUpdateEvent(
            raw_line=f"whitelist update: {path}",
            timestamp=self._clock(),
            file=path,
            added=added,
            removed=removed,
            total=len(entries),
        )

    def _save(self):
        if self.store is None:
            return
        try:
            self.store.save(self.state)
        except StateStoreError as e:
            logger.warning(f"Whitelist state not persisted, continuing in memory: {e}")
