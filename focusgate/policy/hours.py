"""Blocked hour windows.

A window spec is a comma-separated list of inclusive ``start-end`` hour
ranges, e.g. ``"8-11,13-17"``. Tokens that do not describe a valid range are
skipped with a warning instead of being widened to a default bound.
"""

from __future__ import annotations

from dataclasses import dataclass

from focusgate.utils.logger import get_logger

logger = get_logger(__name__)

MIN_HOUR = 0
MAX_HOUR = 23


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive range of wall-clock hours."""

    start: int
    end: int

    def contains(self, hour: int) -> bool:
        return self.start <= hour <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class TimeWindowSet:
    """Collection of blocked hour windows. Empty means no time restriction."""

    windows: tuple[TimeWindow, ...] = ()

    @classmethod
    def parse(cls, spec: str) -> "TimeWindowSet":
        """Parse a window spec such as ``"8-11,13-17"``.

        Skipped (with a warning): tokens without exactly one ``-``, bounds that
        are not integers, bounds outside 0-23, and ranges whose start is after
        their end. Empty tokens are ignored silently.
        """
        windows: list[TimeWindow] = []
        for token in (spec or "").split(","):
            token = token.strip()
            if not token:
                continue
            window = _parse_window(token)
            if window is not None:
                windows.append(window)
        return cls(tuple(windows))

    def contains(self, hour: int) -> bool:
        return any(window.contains(hour) for window in self.windows)

    def __len__(self) -> int:
        return len(self.windows)

    def __str__(self) -> str:
        return ",".join(str(window) for window in self.windows)


def _parse_window(token: str) -> TimeWindow | None:
    parts = token.split("-")
    if len(parts) != 2:
        logger.warning("Malformed hour window — ignoring", token=token)
        return None

    try:
        start = int(parts[0])
        end = int(parts[1])
    except ValueError:
        logger.warning("Hour window bound is not an integer — ignoring", token=token)
        return None

    if not (MIN_HOUR <= start <= MAX_HOUR and MIN_HOUR <= end <= MAX_HOUR):
        logger.warning(
            "Hour window bound out of range — ignoring",
            token=token,
            min_hour=MIN_HOUR,
            max_hour=MAX_HOUR,
        )
        return None

    if start > end:
        logger.warning("Hour window start is after its end — ignoring", token=token)
        return None

    return TimeWindow(start, end)
