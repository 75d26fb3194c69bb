"""Command-line entry point for focusgate.

Starts the forward proxy and the redirect page server in one event loop:

    focusgate --blacklist ~/.focusgate/blacklist --orgdir ~/org --hours 8-11,13-17
    python -m focusgate.run --blockmode

Flags override the config file and FOCUSGATE_* environment variables. A
listen failure on either server is fatal: uvicorn exits the process.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

import uvicorn

from focusgate.config import Config, load_config, split_listen_addr
from focusgate.gate import build_gate
from focusgate.main import LOG_LEVEL, create_proxy_app, create_web_app
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)

# Maximum number of concurrent proxy connections; HTTP 503 beyond this.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focusgate",
        description="Forward proxy that redirects blacklisted hosts during focus time.",
    )
    parser.add_argument("--config", help="Config file to load before the defaults")
    parser.add_argument("--proxy", help="Proxy listen address (default :8080)")
    parser.add_argument("--web", help="Redirect page server listen address (default :8081)")
    parser.add_argument("--blacklist", help="File with one blocked host pattern per line")
    parser.add_argument("--orgdir", help="Org-mode directory scanned for running clocks")
    parser.add_argument(
        "--blockmode",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Block blacklisted hosts at all times",
    )
    parser.add_argument("--hours", help="Blocked hours, example: 8-11,13-17")
    return parser


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line flags to ``config`` in place; unset flags are skipped."""
    if args.proxy is not None:
        config.proxy_addr = args.proxy
    if args.web is not None:
        config.web_addr = args.web
    if args.blacklist is not None:
        config.policy.blacklist = args.blacklist
    if args.orgdir is not None:
        config.policy.orgdir = args.orgdir
    if args.blockmode is not None:
        config.policy.blockmode = args.blockmode
    if args.hours is not None:
        config.policy.hours = args.hours
    return config


def _uvicorn_server(app, addr: str, **kwargs) -> uvicorn.Server:
    try:
        host, port = split_listen_addr(addr)
    except ValueError as exc:
        print(f"CONFIG ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=LOG_LEVEL.lower(),
            backlog=UVICORN_BACKLOG,
            timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
            **kwargs,
        )
    )


async def serve(config: Config) -> None:
    """Run both servers until either one exits, then stop the other."""
    gate = build_gate(config)

    proxy_server = _uvicorn_server(
        create_proxy_app(gate),
        config.proxy_addr,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
    )
    web_server = _uvicorn_server(create_web_app(gate), config.web_addr, lifespan="off")
    servers = (proxy_server, web_server)

    tasks = [asyncio.create_task(server.serve()) for server in servers]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for server in servers:
        server.should_exit = True
    await asyncio.gather(*pending)
    for task in done:
        task.result()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = apply_args(load_config(args.config), args)
    logger.info(
        "Starting focusgate",
        proxy_addr=config.proxy_addr,
        web_addr=config.web_addr,
        blacklist=config.policy.blacklist,
        orgdir=config.policy.orgdir or None,
    )
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        # uvicorn re-raises the captured SIGINT after its graceful shutdown
        logger.info("focusgate stopped")


if __name__ == "__main__":
    main()
