"""Runtime policy bundle shared by the proxy and the redirect page server.

build_gate() turns a Config into the live objects: the blacklist loader, the
published clock state, the optional clock watcher, the decision engine and
the transport-facing ProxyGate. Both FastAPI apps read it from
``app.state.gate``; the proxy app's lifespan owns its background tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from focusgate.config import Config
from focusgate.policy.blocklist import BlocklistLoader
from focusgate.policy.clock import ClockState, ClockStateWatcher
from focusgate.policy.engine import DecisionEngine
from focusgate.policy.hours import TimeWindowSet
from focusgate.proxy.redirect import ProxyGate
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Gate:
    config: Config
    blocklist: BlocklistLoader
    clock_state: ClockState
    watcher: Optional[ClockStateWatcher]
    engine: DecisionEngine
    proxy_gate: ProxyGate
    ready: bool = False  # set by the proxy lifespan once background tasks run


def build_gate(config: Config) -> Gate:
    """Load the blacklist, parse hour windows and wire the decision engine.

    Never raises for bad policy inputs: a missing blacklist or malformed hour
    window is logged and degrades to "nothing blocked" / "window ignored".
    The watcher is created but not started; an empty orgdir disables it.
    """
    policy = config.policy

    blocklist = BlocklistLoader()
    blocklist.load(policy.blacklist)

    windows = TimeWindowSet.parse(policy.hours)
    clock_state = ClockState()

    watcher: Optional[ClockStateWatcher] = None
    if policy.orgdir:
        watcher = ClockStateWatcher(policy.orgdir, clock_state, interval=policy.poll_interval)
    else:
        logger.info("Clock watcher disabled (no orgdir configured)")

    engine = DecisionEngine(
        blocklist,
        windows=windows,
        block_mode=policy.blockmode,
        clock_state=clock_state,
    )

    logger.info(
        "Policy ready",
        blacklist_count=len(blocklist.get_blocklist()),
        blockmode=policy.blockmode,
        windows=str(windows),
        orgdir=policy.orgdir or None,
    )

    return Gate(
        config=config,
        blocklist=blocklist,
        clock_state=clock_state,
        watcher=watcher,
        engine=engine,
        proxy_gate=ProxyGate(engine, config.web_addr),
    )
