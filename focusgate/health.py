"""Health endpoint for focusgate, served by the redirect page server.

  GET /health — 503 before the proxy lifespan has finished starting,
                200 with the live policy state afterwards.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from focusgate.gate import Gate

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Report proxy readiness and the current policy inputs.

    Response body (200):
        {
          "status": "ok",
          "clocking": false,
          "clock_watcher": "running" | "disabled",
          "clock_updated_at": 1700000000.0 | null,
          "blockmode": false,
          "hours": "8-11,13-17",
          "blacklist_count": 12,
          "redirect_target": "127.0.0.1:8081"
        }
    """
    gate: Gate | None = getattr(request.app.state, "gate", None)
    if gate is None or not gate.ready:
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "focusgate is starting up"},
        )

    return {
        "status": "ok",
        "clocking": gate.clock_state.clocking,
        "clock_watcher": "running" if gate.watcher is not None else "disabled",
        "clock_updated_at": gate.clock_state.updated_at,
        "blockmode": gate.engine.block_mode,
        "hours": str(gate.engine.windows),
        "blacklist_count": len(gate.blocklist.get_blocklist()),
        "redirect_target": gate.proxy_gate.redirect_target,
    }
