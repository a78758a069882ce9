from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .broadcaster import Broadcaster
from .buildings import BuildingStateStore
from .extractor import EventExtractor, RegexEventExtractor
from .models import BuildingClear, BuildingDamage, GameEvent


log = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 0.05
MAX_PARTIAL_BYTES = 64 * 1024
READ_ERROR_LOG_EVERY_SEC = 5.0


@dataclass
class Cursor:
    offset: int = 0
    # Bytes after the last newline of the previous read, completed by the next one
    partial: bytes = b""

    def advance(self, size: int, chunk: bytes) -> List[str]:
        """Move to ``size`` and return the complete lines ``chunk`` finishes."""
        self.offset = size
        data = self.partial + chunk
        *lines, self.partial = data.split(b"\n")
        if len(self.partial) > MAX_PARTIAL_BYTES:
            # Oversized fragment: flush it as its own line
            lines.append(self.partial)
            self.partial = b""
        return [raw.decode("utf-8", errors="replace").rstrip("\r") for raw in lines]


class LogTailer:
    """Follows one log file and turns appended lines into broadcast events.

    Only activity after ``start`` is reported: the cursor begins at the
    file's current size, so restarting the watch never replays history.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        store: Optional[BuildingStateStore] = None,
        extractor: Optional[EventExtractor] = None,
        *,
        poll_interval: float = POLL_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
    ):
        self.broadcaster = broadcaster
        self.store = store if store is not None else BuildingStateStore()
        self.extractor = extractor if extractor is not None else RegexEventExtractor(clock=clock)
        self.poll_interval = poll_interval
        self._clock = clock
        self._path: Optional[Path] = None
        self._cursor = Cursor()
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        # Read-error log rate limit
        self._read_error_last_log_ts = 0.0

    @property
    def watching(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def cursor(self) -> int:
        return self._cursor.offset

    async def start(self, path: str | os.PathLike) -> bool:
        p = Path(path)
        if not p.is_file():
            log.error("[Tailer] Log file not found: %s", p)
            return False
        async with self._lock:
            if self._task is not None:
                await self._halt()
            try:
                size = p.stat().st_size
            except OSError as e:
                log.error("[Tailer] Cannot stat %s: %s", p, e)
                return False
            self._path = p
            self._cursor = Cursor(offset=size)
            self._task = asyncio.create_task(self._run(), name="scoutmap-tailer")
        log.info("[Tailer] Started watching log file: %s (from byte %d)", p, size)
        return True

    async def stop(self) -> None:
        async with self._lock:
            if self._task is None:
                return
            await self._halt()
            self._path = None
        log.info("[Tailer] Stopped watching log file")

    async def _halt(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._cursor = Cursor()
        self.store.clear()
        self.broadcaster.broadcast(BuildingClear())

    async def _run(self) -> None:
        while True:
            try:
                self.poll()
            except Exception:
                log.exception("[Tailer] Poll failed")
            await asyncio.sleep(self.poll_interval)

    def poll(self) -> List[GameEvent]:
        """One tick: read what was appended since the cursor, then sweep the building store."""
        events: List[GameEvent] = []
        if self._path is not None:
            for line in self._read_new_lines(self._path):
                ev = self.extractor.extract(line)
                if ev is None:
                    continue
                if isinstance(ev, BuildingDamage):
                    self.store.upsert(ev, self._clock())
                events.append(ev)
        events.extend(self.store.sweep(self._clock()))
        for ev in events:
            self.broadcaster.broadcast(ev)
        return events

    def _read_new_lines(self, path: Path) -> List[str]:
        try:
            size = path.stat().st_size
            if size <= self._cursor.offset:
                return []
            with path.open("rb") as f:
                f.seek(self._cursor.offset)
                chunk = f.read(size - self._cursor.offset)
        except OSError as e:
            now = self._clock()
            if now - self._read_error_last_log_ts >= READ_ERROR_LOG_EVERY_SEC:
                log.warning("[Tailer] Skipping poll, cannot read %s: %s", path, e)
                self._read_error_last_log_ts = now
            return []
        return self._cursor.advance(size, chunk)
