"""focusgate access policy.

Public API:
    BlockList, BlocklistLoader, load_blocklist — blacklist loading and matching
    TimeWindow, TimeWindowSet                  — blocked hour windows
    ClockState, ClockStateWatcher              — org-mode clocking signal
    DecisionEngine                             — allow/deny verdict per host
"""
from focusgate.policy.blocklist import BlockList, BlocklistLoader, load_blocklist
from focusgate.policy.clock import ClockState, ClockStateWatcher
from focusgate.policy.engine import DecisionEngine
from focusgate.policy.hours import TimeWindow, TimeWindowSet

__all__ = [
    "BlockList",
    "BlocklistLoader",
    "ClockState",
    "ClockStateWatcher",
    "DecisionEngine",
    "TimeWindow",
    "TimeWindowSet",
    "load_blocklist",
]
