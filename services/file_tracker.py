"""
Per-file read progress.

Decides which byte range of a remote log still needs processing and records
progress once a chunk has been consumed. Every mutation is persisted right away;
a failed save is logged and the in-memory state carries on.
"""

import logging
import time
from typing import Optional

from services.state_store import EngineState, FileState, StateStore, StateStoreError

logger = logging.getLogger(__name__)


class FileProgressTracker:
    """Offsets, rotation detection and the first-run bootstrap policy."""

    def __init__(self, state: EngineState, store: Optional[StateStore] = None,
                 backfill: bool = False):
        self.state = state
        self.store = store
        self.backfill = backfill

    def decide_range(self, path: str, remote_size: int) -> tuple[int, bool]:
        """
        Work out where to resume reading a file.

        Args:
            path: Normalized remote path
            remote_size: Current size reported by the transport

        Returns:
            (from_offset, should_skip)
        """
        known = self.state.files.get(path)

        if known is None:
            if not self.state.bootstrapped and not self.backfill:
                # First run: start watching from the current end of file
                logger.debug(f"Bootstrap: {path} starts at {remote_size}")
                self._set_offset(path, remote_size)
                return remote_size, True

            logger.debug(f"New file: {path}")
            self._set_offset(path, 0)
            from_offset = 0

        elif remote_size < known.offset:
            logger.info(f"Rotation detected for {path} ({known.offset} -> {remote_size} bytes)")
            self._set_offset(path, 0)
            from_offset = 0

        else:
            from_offset = known.offset

        return from_offset, remote_size == from_offset

    def commit(self, path: str, new_offset: int):
        """Record that bytes [0, new_offset) of path have been processed."""
        self._set_offset(path, new_offset)

    def mark_bootstrap_complete(self):
        """Flag the first full pass as done. Safe to call every tick."""
        if self.state.bootstrapped:
            return
        self.state.bootstrapped = True
        logger.info("Bootstrap complete")
        self.save()

    def _set_offset(self, path: str, offset: int):
        self.state.files[path] = FileState(offset=offset, updated_at=time.time())
        self.save()

    def save(self):
        """Persist the current state; failures are logged, not raised."""
        if self.store is None:
            return
        try:
            self.store.save(self.state)
        except StateStoreError as e:
            logger.warning(f"State not persisted, continuing in memory: {e}")
