"""focusgate forward proxy.

Public API:
    ProxyGate          — per-connection / per-request decision hooks
    redirect_address   — host:port of the redirect page server
    create_http_client — shared outbound httpx client factory
"""
from focusgate.proxy.engine import create_http_client
from focusgate.proxy.redirect import ProxyGate, redirect_address

__all__ = ["ProxyGate", "create_http_client", "redirect_address"]
