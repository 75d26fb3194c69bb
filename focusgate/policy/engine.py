"""Allow/deny decision for outbound destinations.

evaluate() is the ONLY function the transport calls per connection/request.

    deny = blacklisted AND (block mode OR hour window OR clocking)

Hour windows can only switch denial on; they never exempt a host from block
mode. The engine holds no mutable state of its own: it reads the current
BlockList snapshot, the wall clock and the published ClockState.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from focusgate.policy.blocklist import BlocklistLoader
from focusgate.policy.clock import ClockState
from focusgate.policy.hours import TimeWindowSet
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)


class DecisionEngine:
    """Combines blacklist, hour windows, block mode and clocking into a verdict.

    Args:
        blocklist:   Loader holding the current BlockList.
        windows:     Blocked hour windows.
        block_mode:  Deny blacklisted hosts regardless of time.
        clock_state: Published clocking flag (stays False without a watcher).
        now:         Local wall-clock source; injectable for tests.
    """

    def __init__(
        self,
        blocklist: BlocklistLoader,
        windows: Optional[TimeWindowSet] = None,
        block_mode: bool = False,
        clock_state: Optional[ClockState] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.blocklist = blocklist
        self.windows = windows if windows is not None else TimeWindowSet()
        self.block_mode = block_mode
        self.clock_state = clock_state if clock_state is not None else ClockState()
        self._now = now

    def in_blocked_hours(self) -> bool:
        """True if block mode is on or the current local hour is in a window."""
        if self.block_mode:
            return True
        if not self.windows:
            return False
        return self.windows.contains(self._now().hour)

    def evaluate(self, host: str) -> bool:
        """Return True if ``host`` must be denied (redirected).

        INVARIANT: NEVER raises. An unexpected error is logged and the host is
        allowed, the same fail-open posture as a missing blacklist.
        """
        try:
            if not self.blocklist.get_blocklist().matches(host):
                return False

            time_deny = self.in_blocked_hours()
            clocking = self.clock_state.clocking
            deny = time_deny or clocking

            logger.debug(
                "Blacklisted host evaluated",
                host=host,
                deny=deny,
                time_deny=time_deny,
                clocking=clocking,
            )
            return deny
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "evaluate error — allowing host (fail-open)",
                host=host,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
