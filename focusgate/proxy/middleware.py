"""Absolute-form request target normalisation for the forward proxy.

Proxy clients send plain-HTTP requests with an absolute request target:

    GET http://example.com/path?q=1 HTTP/1.1

Depending on the uvicorn HTTP implementation the ASGI scope then carries
either the full URL as its path or just ``/path`` with a ``Host`` header.
This middleware rewrites the first shape into the second so the catch-all
proxy route always sees an origin-form path and the destination in ``Host``.
"""

from __future__ import annotations

from urllib.parse import unquote, urlsplit

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from focusgate.utils.logger import get_logger

logger = get_logger(__name__)

_ABSOLUTE_PREFIXES: tuple[str, ...] = ("http://", "https://")


def normalise_absolute_target(scope: dict) -> bool:
    """Rewrite an absolute-form ``scope`` in place; True if it was rewritten."""
    path: str = scope.get("path", "")
    if not path.lower().startswith(_ABSOLUTE_PREFIXES):
        return False

    raw_target: bytes = scope.get("raw_path") or path.encode("utf-8")
    parts = urlsplit(raw_target.split(b"?", 1)[0].decode("latin-1"))
    raw_origin_path = parts.path or "/"
    scope["scheme"] = parts.scheme.lower()
    scope["path"] = unquote(raw_origin_path)
    scope["raw_path"] = raw_origin_path.encode("latin-1")
    headers = [(name, value) for name, value in scope.get("headers", []) if name != b"host"]
    headers.append((b"host", parts.netloc.encode("latin-1")))
    scope["headers"] = headers
    return True


class AbsoluteFormMiddleware(BaseHTTPMiddleware):
    """Normalise absolute-form proxy requests before routing.

    Registration (in create_proxy_app() in focusgate/main.py):
        application.add_middleware(AbsoluteFormMiddleware)
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        # request.scope is the dict the inner app is called with
        if normalise_absolute_target(request.scope):
            logger.debug("Absolute-form target normalised", path=request.scope["path"])
        return await call_next(request)
