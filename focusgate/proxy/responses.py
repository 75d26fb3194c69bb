"""Error response builders for the focusgate forward proxy.

  build_upstream_unavailable_response():
      HTTP 502 — the destination (or the redirect page server) is unreachable.

  build_bad_target_response():
      HTTP 400 — the client request has no usable destination (no Host header,
      malformed URL).

Both carry ``X-Focusgate-Request-ID`` so an error can be matched to its log
entry. A denied destination is NOT an error: it is redirected and answered
by the redirect page server.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from focusgate.proxy.headers import REQUEST_ID_HEADER


def build_upstream_unavailable_response(
    request_id: str,
    reason: str = "",
) -> JSONResponse:
    """Build the HTTP 502 response for upstream connectivity failures.

    Args:
        request_id: ULID of this request, used for log correlation.
        reason:     Short reason for the failure (e.g. ``"ConnectError"``).
    """
    response = JSONResponse(
        status_code=502,
        content={
            "error": {
                "message": "Upstream host unavailable",
                "code": "upstream_unavailable",
                "detail": reason if reason else None,
            }
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def build_bad_target_response(request_id: str, message: str) -> JSONResponse:
    response = JSONResponse(
        status_code=400,
        content={"error": {"message": message, "code": "bad_request"}},
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
