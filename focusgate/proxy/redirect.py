"""Redirect contract between the decision engine and the transport.

On a deny verdict the outbound target is rewritten to the local redirect page
server: scheme ``http``, host = the web listen address with ``127.0.0.1``
substituted for an empty host. Path and query are kept so the page server
can still serve assets the redirect page references.

ProxyGate is the object a transport holds: one call per CONNECT
(``on_connect``) and one per forwarded request (``on_request``).
"""

from __future__ import annotations

import httpx

from focusgate.constants import LOOPBACK_HOST
from focusgate.policy.engine import DecisionEngine
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)


def redirect_address(web_addr: str) -> str:
    """Return the ``host:port`` the redirect page server is reachable at.

    >>> redirect_address(":8081")
    '127.0.0.1:8081'
    >>> redirect_address("10.0.0.2:8081")
    '10.0.0.2:8081'
    """
    host, sep, port = web_addr.rpartition(":")
    if not sep:
        return web_addr or LOOPBACK_HOST
    return f"{host or LOOPBACK_HOST}:{port}"


def rewrite_to_redirect(request: httpx.Request, web_addr: str) -> httpx.Request:
    """Point ``request`` at the redirect page server (mutates and returns it)."""
    target = httpx.URL(f"http://{redirect_address(web_addr)}")
    request.url = request.url.copy_with(
        scheme="http",
        host=target.host,
        port=target.port,
    )
    request.headers["Host"] = redirect_address(web_addr)
    request.extensions["focusgate_redirected"] = True
    return request


def is_redirected(request: httpx.Request) -> bool:
    return bool(request.extensions.get("focusgate_redirected", False))


class ProxyGate:
    """Per-connection and per-request hooks for the transport.

    Args:
        engine:   Decision engine consulted for every destination.
        web_addr: Listen address of the redirect page server.
    """

    def __init__(self, engine: DecisionEngine, web_addr: str) -> None:
        self.engine = engine
        self.web_addr = web_addr

    @property
    def redirect_target(self) -> str:
        return redirect_address(self.web_addr)

    def on_connect(self, host: str) -> str:
        """Return the tunnel target for a CONNECT to ``host``.

        Denied hosts are tunnelled to the redirect page server instead.
        """
        if self.engine.evaluate(host):
            logger.info("connect_redirected", host=host, target=self.redirect_target)
            return self.redirect_target
        return host

    def on_request(self, request: httpx.Request) -> httpx.Request:
        """Rewrite ``request`` to the redirect page server if its host is denied."""
        host = request.url.netloc.decode("ascii")
        if self.engine.evaluate(host):
            logger.info(
                "request_redirected",
                host=host,
                path=request.url.path,
                target=self.redirect_target,
            )
            return rewrite_to_redirect(request, self.web_addr)
        return request
