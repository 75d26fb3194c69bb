"""Blacklist loading and matching for focusgate.

The blacklist is a flat text file with one host pattern per line. A pattern
matches a destination host when it appears anywhere inside the host string
(case-sensitive, unanchored substring test).

``BlocklistLoader`` owns the current ``BlockList`` and swaps it wholesale on
reload; it can hot-reload the file with watchfiles while the proxy runs.
"""

from __future__ import annotations

import asyncio
import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from focusgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── BlockList ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BlockList:
    """Immutable, ordered collection of host substring patterns.

    INVARIANT: an empty pattern matches nothing (the empty string is a
    substring of every host, so it is excluded explicitly).
    """

    patterns: tuple[str, ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "BlockList":
        return cls(tuple(patterns))

    def matches(self, host: str) -> bool:
        """True if at least one non-empty pattern is a substring of ``host``."""
        return any(pattern and pattern in host for pattern in self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self.patterns


# ─── File parsing ─────────────────────────────────────────────────────────────


def read_blocklist(path: str) -> BlockList:
    """Read a blacklist file into a BlockList.

    Lines are taken verbatim apart from the line terminator. Empty lines are
    skipped. Undecodable bytes are replaced instead of aborting the read.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    patterns: list[str] = []
    with open(path, encoding="utf-8", errors="replace", newline="") as fh:
        for line in fh:
            pattern = line.rstrip("\r\n")
            if not pattern:
                continue
            patterns.append(pattern)
    return BlockList.from_patterns(patterns)


def load_blocklist(path: str) -> BlockList:
    """Load a blacklist file, failing open.

    A missing or unreadable file is logged and yields an empty BlockList, so
    no host is blocked. Never raises.
    """
    try:
        blocklist = read_blocklist(path)
    except FileNotFoundError:
        logger.error("Blacklist file not found — no hosts blocked", path=path)
        return BlockList()
    except OSError as exc:
        logger.error(
            "Could not read blacklist file — no hosts blocked",
            path=path,
            error=str(exc),
        )
        return BlockList()

    logger.info("Blacklist loaded", path=path, count=len(blocklist))
    return blocklist


# ─── BlocklistLoader ──────────────────────────────────────────────────────────


def watch_directory(path: str) -> str:
    """Directory watched for changes to the blacklist at ``path``."""
    return os.path.dirname(os.path.abspath(path))


def blacklist_change_filter(path: str) -> Callable[[Any, str], bool]:
    """watchfiles filter accepting only changes to the blacklist file itself."""
    target = os.path.abspath(path)

    def accept(_change: Any, changed_path: str) -> bool:
        return os.path.abspath(changed_path) == target

    return accept


class BlocklistLoader:
    """Thread-safe holder of the current BlockList with watchfiles hot-reload.

    Usage (in lifespan):
        loader = BlocklistLoader()
        loader.load("blacklist")
        task = asyncio.create_task(loader.start_watcher("blacklist"))

    Readers call get_blocklist(), which returns the current immutable BlockList.
    load() builds a complete new list before swapping it in, so a reader sees
    either the old list or the new one, never a mix.
    """

    def __init__(self, blocklist: Optional[BlockList] = None) -> None:
        self._blocklist: BlockList = blocklist if blocklist is not None else BlockList()
        self._lock = threading.Lock()

    def get_blocklist(self) -> BlockList:
        with self._lock:
            return self._blocklist

    def replace(self, blocklist: BlockList) -> None:
        with self._lock:
            self._blocklist = blocklist

    def load(self, path: str) -> int:
        """Load the blacklist from ``path`` and replace the current list.

        Returns the number of loaded patterns (>= 0).
        Returns 0 if the file does not exist (empty list, nothing blocked).
        Returns -1 on a read error; the prior list is kept.

        Never raises.
        """
        try:
            blocklist = read_blocklist(path)
        except FileNotFoundError:
            logger.error("Blacklist file not found — no hosts blocked", path=path)
            self.replace(BlockList())
            return 0
        except OSError as exc:
            logger.error(
                "Blacklist reload failed: could not read file — keeping prior list",
                path=path,
                error=str(exc),
            )
            return -1

        self.replace(blocklist)
        logger.info("Blacklist loaded", path=path, count=len(blocklist))
        return len(blocklist)

    async def start_watcher(self, path: str) -> None:
        """Reload the blacklist whenever the file is created, changed or removed.

        Watches the file's parent directory rather than the file itself, so a
        blacklist created after startup is still picked up. Runs until
        cancelled; intended to be wrapped in an asyncio.Task that the lifespan
        cancels on shutdown. Reload errors are logged and the watcher keeps
        running.
        """
        directory = watch_directory(path)
        try:
            import watchfiles

            logger.info("Blacklist watcher started", path=path, directory=directory)
            async for _ in watchfiles.awatch(
                directory,
                watch_filter=blacklist_change_filter(path),
                recursive=False,
            ):
                try:
                    count = self.load(path)
                    if count >= 0:
                        logger.info("Blacklist hot-reloaded", count=count, path=path)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "Blacklist reload handler error (non-fatal)",
                        error=str(exc),
                        path=path,
                    )
        except asyncio.CancelledError:
            logger.debug("Blacklist watcher cancelled", path=path)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Blacklist watcher error (watcher stopped)",
                error=str(exc),
                path=path,
            )
