"""Plain-HTTP forward proxy handler for focusgate.

Every request reaching the proxy app is a forward-proxy request for some
destination host (taken from the ``Host`` header once AbsoluteFormMiddleware
has normalised the target). The handler:

  1. assigns a ULID request ID (log context + ``X-Focusgate-Request-ID``),
  2. builds the outbound httpx request with hop-by-hop headers stripped,
  3. lets ProxyGate rewrite it to the redirect page server if denied,
  4. sends it with the shared httpx.AsyncClient and streams the raw response
     bytes back unchanged.

Failure modes:
  - No Host header / malformed destination → HTTP 400.
  - httpx.ConnectError / TimeoutException / RemoteProtocolError → HTTP 502.
  - Upstream 4xx/5xx → passed through as-is.

HTTPS CONNECT tunnels are handled by the TLS-terminating transport, which
calls ProxyGate.on_connect(); this module serves plain HTTP only.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from focusgate.constants import (
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    PROXY_TIMEOUT,
)
from focusgate.proxy.headers import build_client_response_headers, build_upstream_headers
from focusgate.proxy.redirect import ProxyGate, is_redirected
from focusgate.proxy.responses import build_bad_target_response, build_upstream_unavailable_response
from focusgate.utils.logger import clear_request_id, get_logger, set_request_id
from focusgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for all outbound requests.

    Created once in the proxy lifespan and stored in app.state.http_client;
    never instantiated per request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(PROXY_TIMEOUT),
        follow_redirects=False,  # the client follows redirects itself
        trust_env=False,  # never chain into another proxy from the environment
    )


# ─── Destination ──────────────────────────────────────────────────────────────


def destination_url(request: Request) -> httpx.URL:
    """Build the outbound URL from the Host header and the origin-form target.

    Raises:
        ValueError: If the request carries no Host header.
        httpx.InvalidURL: If the resulting URL is malformed.
    """
    host = request.headers.get("host")
    if not host:
        raise ValueError("Missing Host header")

    raw_path: bytes = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    raw_path = raw_path.split(b"?", 1)[0]
    url = httpx.URL(f"{request.url.scheme}://{host}{raw_path.decode('latin-1')}")
    query: bytes = request.scope.get("query_string", b"")
    if query:
        url = url.copy_with(query=query)
    return url


# ─── Proxy handler ────────────────────────────────────────────────────────────


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_handler(request: Request, path: str) -> Response:
    """Forward one proxied request, redirecting it if the destination is denied."""
    request_id = generate_ulid()
    set_request_id(request_id)
    try:
        return await _forward(request, request_id)
    finally:
        clear_request_id()


async def _forward(request: Request, request_id: str) -> Response:
    proxy_gate: ProxyGate = request.app.state.gate.proxy_gate
    http_client: httpx.AsyncClient = request.app.state.http_client

    try:
        url = destination_url(request)
    except (ValueError, httpx.InvalidURL) as exc:
        logger.warning("bad_proxy_target", error=str(exc), path=request.url.path)
        return build_bad_target_response(request_id, str(exc) or "Invalid destination")

    body: bytes = await request.body()

    upstream_request = http_client.build_request(
        method=request.method,
        url=url,
        headers=build_upstream_headers(request.headers.items()),
        content=body,
    )
    upstream_request = proxy_gate.on_request(upstream_request)
    redirected = is_redirected(upstream_request)

    try:
        upstream_response = await http_client.send(upstream_request, stream=True)
    except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
        logger.warning(
            "upstream_unavailable",
            upstream_url=str(upstream_request.url),
            redirected=redirected,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return build_upstream_unavailable_response(
            request_id=request_id,
            reason=type(exc).__name__,
        )

    logger.info(
        "request_proxied",
        method=request.method,
        host=url.netloc.decode("ascii"),
        upstream=str(upstream_request.url),
        redirected=redirected,
        status_code=upstream_response.status_code,
    )

    # Raw bytes keep any content-encoding intact for the client.
    return StreamingResponse(
        content=upstream_response.aiter_raw(),
        status_code=upstream_response.status_code,
        headers=build_client_response_headers(
            upstream_response.headers, request_id, redirected=redirected
        ),
        background=BackgroundTask(upstream_response.aclose),
    )
