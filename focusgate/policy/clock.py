"""Clock-state watcher: is the user currently clocked in?

Org-mode records time tracking as ``CLOCK:`` lines. A running clock looks like

    CLOCK: [2024-01-01 Mon 09:00]

and a closed one like

    CLOCK: [2024-01-01 Mon 09:00]--[2024-01-01 Mon 10:00] =>  1:00

The watcher periodically walks a directory tree, reads every ``.org`` file and
publishes ``True`` if any line anywhere is an open clock marker. The scan is
eventually consistent: the published value is at most one poll interval old.

IMPORT RULES:
  - `import re2` ONLY for line classification (google-re2, linear-time).
"""

from __future__ import annotations

import asyncio
import os
import threading
import time
from typing import Optional

import re2

from focusgate.constants import CLOCK_POLL_INTERVAL_S, TRACKED_FILE_MARKER
from focusgate.utils.logger import TimedOperation, get_logger

logger = get_logger(__name__)

# Compiled once at import; evaluated per line.
_CLOCK_MARKER = re2.compile(r"CLOCK:")
_CLOSED_CLOCK = re2.compile(r"CLOCK:.*--.*=>")


# ─── Line / file classification ───────────────────────────────────────────────


def is_open_clock_line(line: str) -> bool:
    """True for a ``CLOCK:`` line that lacks the closing ``-- ... =>`` part."""
    return bool(_CLOCK_MARKER.search(line)) and not _CLOSED_CLOCK.search(line)


def is_tracked_file(path: str) -> bool:
    """True if ``.org`` appears anywhere in the file's path.

    Matches on the full walked path, so every file below a ``*.org``
    directory is tracked too.
    """
    return TRACKED_FILE_MARKER in path


def file_has_open_clock(path: str) -> bool:
    """Scan one file for an open clock marker.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    with open(path, encoding="utf-8", errors="replace") as fh:
        for line in fh:
            if is_open_clock_line(line):
                return True
    return False


def _log_walk_error(exc: OSError) -> None:
    logger.warning(
        "Could not list time-tracking directory — skipping",
        path=exc.filename,
        error=str(exc),
    )


def scan_clock_tree(root: str) -> bool:
    """Walk ``root`` and report whether any tracked file has an open clock.

    Unreadable files and directories are logged and skipped; they never abort
    the scan. Stops at the first open marker found.
    """
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        for name in filenames:
            path = os.path.join(dirpath, name)
            if not is_tracked_file(path):
                continue
            try:
                if file_has_open_clock(path):
                    logger.debug("Open clock marker found", path=path)
                    return True
            except OSError as exc:
                logger.warning(
                    "Could not read time-tracking file — skipping",
                    path=path,
                    error=str(exc),
                )
    return False


# ─── ClockState ───────────────────────────────────────────────────────────────


class ClockState:
    """Single-writer / multi-reader cell holding the published clocking flag.

    The watcher publishes from a worker thread's result while request handlers
    read from the event loop, so access goes through a lock. Values are
    replaced wholesale; nothing is merged.
    """

    def __init__(self, clocking: bool = False) -> None:
        self._lock = threading.Lock()
        self._clocking = clocking
        self._updated_at: Optional[float] = None

    @property
    def clocking(self) -> bool:
        with self._lock:
            return self._clocking

    @property
    def updated_at(self) -> Optional[float]:
        """Unix time of the last publish, or None before the first scan."""
        with self._lock:
            return self._updated_at

    def publish(self, clocking: bool) -> None:
        with self._lock:
            self._clocking = clocking
            self._updated_at = time.time()


# ─── ClockStateWatcher ────────────────────────────────────────────────────────


class ClockStateWatcher:
    """Periodic background scan of a time-tracking directory.

    Usage (in lifespan):
        watcher = ClockStateWatcher("/home/me/org", state)
        task = asyncio.create_task(watcher.run())
        ...
        watcher.stop()
        await task

    Each cycle scans, publishes, then waits ``interval`` seconds. ``trigger()``
    ends the wait early (tests drive the loop this way instead of sleeping);
    ``stop()`` ends the loop and discards the result of a scan still running.
    Cycles never overlap.
    """

    def __init__(
        self,
        root: str,
        state: Optional[ClockState] = None,
        interval: float = CLOCK_POLL_INTERVAL_S,
    ) -> None:
        self.root = root
        self.state = state if state is not None else ClockState()
        self.interval = interval
        self._wake = asyncio.Event()
        self._stopped = asyncio.Event()
        self.cycles = 0

    def scan(self) -> bool:
        """Run one blocking scan of the directory tree (no publish)."""
        with TimedOperation("Clock scan", logger):
            return scan_clock_tree(self.root)

    async def poll_once(self) -> Optional[bool]:
        """Scan off the event loop and publish the result.

        Returns the published value, or None if the watcher was stopped while
        the scan was in flight (the result is dropped).
        """
        clocking = await asyncio.to_thread(self.scan)
        if self._stopped.is_set():
            return None
        self.state.publish(clocking)
        self.cycles += 1
        logger.info("Clocking state", clocking=clocking, root=self.root)
        return clocking

    async def run(self) -> None:
        logger.info("Clock watcher started", root=self.root, interval_s=self.interval)
        try:
            while not self._stopped.is_set():
                try:
                    await self.poll_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "Clock scan error (non-fatal)",
                        error=str(exc),
                        root=self.root,
                    )
                await self._wait()
        except asyncio.CancelledError:
            logger.debug("Clock watcher cancelled", root=self.root)
            raise
        logger.info("Clock watcher stopped", root=self.root)

    async def _wait(self) -> None:
        if self._stopped.is_set():
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    def trigger(self) -> None:
        """Start the next scan now instead of after the interval."""
        self._wake.set()

    def stop(self) -> None:
        self._stopped.set()
        self._wake.set()
