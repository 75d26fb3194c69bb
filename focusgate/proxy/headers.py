"""HTTP header processing for the focusgate forward proxy.

  - build_upstream_headers(): strips hop-by-hop and proxy-only headers and
    forwards everything else unchanged.
  - build_client_response_headers(): strips hop-by-hop headers from the
    upstream response and tags it with the request ID.

RFC 7230 §6.1 — hop-by-hop headers MUST NOT be forwarded by intermediaries.
"""

from __future__ import annotations

from typing import Iterable

import httpx

# ─── Constants ────────────────────────────────────────────────────────────────

# Hop-by-hop headers MUST be stripped before forwarding (RFC 7230 §6.1).
# httpx sets content-length from content= and host from the target URL.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

REQUEST_ID_HEADER: str = "X-Focusgate-Request-ID"
REDIRECTED_HEADER: str = "X-Focusgate-Redirected"

# ─── Public API ───────────────────────────────────────────────────────────────


def _connection_tokens(headers: Iterable[tuple[str, str]]) -> set[str]:
    """Header names listed in ``Connection`` are hop-by-hop as well."""
    tokens: set[str] = set()
    for name, value in headers:
        if name.lower() == "connection":
            tokens.update(t.strip().lower() for t in value.split(",") if t.strip())
    return tokens


def build_upstream_headers(
    request_headers: Iterable[tuple[str, str]],
) -> dict[str, str]:
    """Build the header dict to send upstream.

    Args:
        request_headers: Iterable of (name, value) tuples from the incoming request.
                         Typically ``request.headers.items()`` in FastAPI handlers.
    """
    items = list(request_headers)
    dropped = HOP_BY_HOP_HEADERS | _connection_tokens(items)
    return {name: value for name, value in items if name.lower() not in dropped}


def build_client_response_headers(
    upstream_headers: httpx.Headers,
    request_id: str,
    redirected: bool = False,
) -> dict[str, str]:
    """Build the header dict returned to the proxy client.

    Args:
        upstream_headers: ``httpx.Response.headers`` of the upstream response.
        request_id:       ULID of this proxied request.
        redirected:       True when the request was sent to the redirect page.
    """
    items = list(upstream_headers.items())
    dropped = HOP_BY_HOP_HEADERS | _connection_tokens(items)
    headers = {name: value for name, value in items if name.lower() not in dropped}
    headers[REQUEST_ID_HEADER] = request_id
    if redirected:
        headers[REDIRECTED_HEADER] = "true"
    return headers
