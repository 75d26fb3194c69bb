"""focusgate FastAPI application factories + proxy lifespan.

This module implements:
  - create_proxy_app() — forward proxy app (catch-all proxy route)
  - create_web_app()   — redirect page server app (/health + static pages)
  - lifespan           — proxy startup/shutdown sequence

Both apps share one Gate (focusgate.gate.build_gate), stored in
``app.state.gate``. The proxy app owns the Gate's background tasks.

Startup sequence (proxy lifespan):
  1. Blacklist watcher      → asyncio.Task (watchfiles hot-reload), optional
  2. Clock-state watcher    → asyncio.Task (periodic .org scan), optional
  3. create_http_client()   → app.state.http_client
  4. gate.ready = True

Shutdown sequence (reverse):
  gate.ready = False → stop clock watcher → stop blacklist watcher →
  close HTTP client
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from focusgate.gate import Gate
from focusgate.health import router as health_router
from focusgate.policy.blocklist import watch_directory
from focusgate.proxy.engine import create_http_client, router as proxy_router
from focusgate.proxy.middleware import AbsoluteFormMiddleware
from focusgate.utils.logger import configure_logging, get_logger
from focusgate.web.pages import router as pages_router

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 until the proxy lifespan has started."""
    gate: Optional[Gate] = getattr(request.app.state, "gate", None)
    if gate is None or not gate.ready:
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "focusgate is starting up"},
        )


async def _cancel(task: Optional[asyncio.Task[None]]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Proxy app lifespan — starts and stops the Gate's background tasks."""
    gate: Gate = app.state.gate
    policy = gate.config.policy
    logger.info("focusgate proxy starting up...")

    # ── Step 1: Blacklist hot-reload ──────────────────────────────────────────
    blacklist_task: Optional[asyncio.Task[None]] = None
    if policy.watch_blacklist and os.path.isdir(watch_directory(policy.blacklist)):
        blacklist_task = asyncio.create_task(gate.blocklist.start_watcher(policy.blacklist))
    else:
        logger.debug("Blacklist watcher disabled", path=policy.blacklist)

    # ── Step 2: Clock-state watcher ───────────────────────────────────────────
    clock_task: Optional[asyncio.Task[None]] = None
    if gate.watcher is not None:
        clock_task = asyncio.create_task(gate.watcher.run())

    # ── Step 3: Shared outbound HTTP client ───────────────────────────────────
    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client

    # ── Step 4: Ready ─────────────────────────────────────────────────────────
    gate.ready = True
    logger.info(
        "focusgate ready",
        proxy_addr=gate.config.proxy_addr,
        redirect_target=gate.proxy_gate.redirect_target,
    )

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("focusgate shutting down...")
    gate.ready = False

    if gate.watcher is not None:
        gate.watcher.stop()
    await _cancel(clock_task)
    await _cancel(blacklist_task)

    try:
        await http_client.aclose()
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("focusgate shutdown complete")


# ─── Exception handlers ───────────────────────────────────────────────────────


def _install_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )


# ─── Application Factories ────────────────────────────────────────────────────


def create_proxy_app(gate: Gate) -> FastAPI:
    """Create the forward proxy application for ``gate``.

    Every path and method is handled by the proxy route; there is no docs UI.
    """
    application = FastAPI(
        title="focusgate proxy",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.gate = gate

    application.add_middleware(AbsoluteFormMiddleware)
    application.include_router(proxy_router, dependencies=[Depends(require_ready)])
    _install_exception_handlers(application)
    return application


def create_web_app(gate: Gate) -> FastAPI:
    """Create the redirect page server application for ``gate``.

    /health must be registered before the catch-all page route.
    """
    application = FastAPI(
        title="focusgate",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.gate = gate

    application.include_router(health_router)
    application.include_router(pages_router)
    _install_exception_handlers(application)
    return application
