# services/log_monitor.py
"""
Polling loop that turns remote log growth into delivered events.

Each tick: connect, list the log directory, fetch new bytes of every matching
file, classify complete lines, hand events to the sink, commit offsets, then
diff the configured whitelist files. Ticks never overlap; a trigger that
arrives while one is running is dropped.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from helpers.utils import join_remote_path, matches_patterns, normalize_remote_path
from services.file_tracker import FileProgressTracker
from services.log_embed_builder import EventSink
from services.log_parsers import LineClassifier
from services.remote_files import RemoteLogTransport, TransportError
from services.state_store import EngineState, StateStore
from services.whitelist import WhitelistDiffer

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Summary of one ingestion cycle."""
    started_at: float = field(default_factory=time.time)
    duration: float = 0.0
    files_listed: int = 0
    files_ingested: int = 0
    files_failed: int = 0
    events_classified: int = 0
    events_delivered: int = 0
    delivery_failures: int = 0
    whitelist_updates: int = 0
    aborted: bool = False


def split_complete_lines(chunk: bytes) -> tuple[list[str], int]:
    """
    Split a fetched chunk into complete, non-empty lines.

    Returns (lines, consumed_bytes). Bytes after the last newline are a line
    still being written and are not consumed.
    """
    consumed = chunk.rfind(b"\n") + 1
    if consumed == 0:
        return [], 0

    text = chunk[:consumed].decode("utf-8", errors="replace")
    lines = [line.strip() for line in text.split("\n")]
    return [line for line in lines if line], consumed


class LogMonitor:
    """
    Owns the engine state for the process lifetime and runs ticks over it.
    """

    def __init__(self, transport: RemoteLogTransport, sink: EventSink,
                 state: Optional[EngineState] = None, store: Optional[StateStore] = None,
                 directory: str = "/", patterns: Optional[list[str]] = None,
                 whitelist_files: Optional[list[str]] = None, backfill: bool = False,
                 classifier: Optional[LineClassifier] = None):
        self.transport = transport
        self.sink = sink
        self.state = state or EngineState()
        self.store = store
        self.directory = directory or "/"
        self.patterns = list(patterns or [])
        self.whitelist_files = [path for path in (whitelist_files or []) if path.strip()]
        self.classifier = classifier or LineClassifier()
        self.tracker = FileProgressTracker(self.state, store, backfill=backfill)
        self.differ = WhitelistDiffer(self.state, store)

        self.last_result: Optional[TickResult] = None
        self._ticking = False
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_ticking(self) -> bool:
        return self._ticking

    @property
    def is_running(self) -> bool:
        return self._running

    async def tick(self) -> Optional[TickResult]:
        """
        Run one ingestion cycle.

        Returns:
            The cycle summary, or None if a tick was already in progress
        """
        if self._ticking:
            logger.debug("Tick already running, trigger dropped")
            return None

        self._ticking = True
        result = TickResult()
        try:
            await self._run_tick(result)
        finally:
            self._ticking = False
            result.duration = time.time() - result.started_at
            self.last_result = result

        logger.info(
            f"Tick done: {result.files_ingested}/{result.files_listed} files read, "
            f"{result.events_classified} events, {result.events_delivered} delivered, "
            f"{result.whitelist_updates} whitelist updates"
            + (" (aborted)" if result.aborted else "")
        )
        return result

    async def _run_tick(self, result: TickResult):
        try:
            await self.transport.connect()
            listing = await self.transport.list_files(self.directory)
        except TransportError as e:
            logger.error(f"Cannot list remote logs in {self.directory}: {e}")
            result.aborted = True
            await self.transport.disconnect()
            return

        try:
            files = [remote for remote in listing if matches_patterns(remote.name, self.patterns)]
            result.files_listed = len(files)
            if not files:
                logger.debug(f"No files in {self.directory} match {self.patterns}")

            for remote in files:
                await self._ingest_file(remote.name, remote.size, result)

            self.tracker.mark_bootstrap_complete()

            for whitelist_file in self.whitelist_files:
                await self._diff_whitelist(whitelist_file, result)
        finally:
            await self.transport.disconnect()

    async def _ingest_file(self, name: str, size: int, result: TickResult):
        path = join_remote_path(self.directory, name)
        from_offset, should_skip = self.tracker.decide_range(path, size)
        if should_skip:
            logger.debug(f"{path}: nothing new (offset {from_offset})")
            return

        try:
            chunk = await self.transport.read_range(path, from_offset)
        except TransportError as e:
            logger.error(f"Download failed for {path}: {e}")
            result.files_failed += 1
            return

        lines, consumed = split_complete_lines(chunk)
        if consumed == 0:
            logger.debug(f"{path}: no complete line yet")
            return

        result.files_ingested += 1
        for line in lines:
            event = self.classifier.classify(line)
            if event is None:
                continue
            result.events_classified += 1
            await self._deliver(event, result)

        self.tracker.commit(path, from_offset + consumed)
        logger.debug(f"{path}: {len(lines)} lines, offset {from_offset} -> {from_offset + consumed}")

    async def _diff_whitelist(self, whitelist_file: str, result: TickResult):
        relative = normalize_remote_path(whitelist_file)
        path = join_remote_path(self.directory, relative)
        try:
            content = await self.transport.read_all(path)
        except TransportError as e:
            logger.error(f"Whitelist download failed for {path}: {e}")
            return

        event = self.differ.diff(path, content.decode("utf-8", errors="replace"))
        if event is not None:
            result.whitelist_updates += 1
            await self._deliver(event, result)

    async def _deliver(self, event, result: TickResult):
        try:
            delivered = await self.sink.deliver(event)
        except Exception as e:
            logger.error(f"Sink raised while delivering {event.event_type.value} event: {e}", exc_info=True)
            delivered = False

        if delivered:
            result.events_delivered += 1
        else:
            result.delivery_failures += 1

    def reset_state(self):
        """Forget offsets and whitelist baselines; the next tick bootstraps again."""
        self.state.reset()
        self.tracker.save()

    async def start(self, poll_interval: int = 60) -> None:
        """Start the poll loop. The first tick runs right away."""
        if self._running:
            logger.warning("Monitor already running")
            return

        self._running = True
        logger.info(
            f"Starting log monitor on {self.transport!r}{self.directory}, "
            f"patterns: {', '.join(self.patterns)}, poll interval: {poll_interval}s"
        )

        async def monitor_loop():
            while self._running:
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Error in monitor loop: {e}", exc_info=True)
                await asyncio.sleep(poll_interval)

        self._task = asyncio.create_task(monitor_loop())

    async def stop(self) -> None:
        """Stop the poll loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
