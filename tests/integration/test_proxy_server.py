"""Integration tests for the forward proxy app.

The upstream network is replaced with httpx.MockTransport by patching
create_http_client in focusgate.main, so the full request path runs:
AbsoluteFormMiddleware → require_ready → proxy_handler → ProxyGate → client.
"""

from __future__ import annotations

import httpx
import pytest
from starlette.requests import Request
from starlette.testclient import TestClient

from focusgate.config import Config
from focusgate.gate import build_gate
from focusgate.main import create_proxy_app
from focusgate.proxy.engine import destination_url
from focusgate.proxy.headers import REDIRECTED_HEADER, REQUEST_ID_HEADER

# ─── Helpers ──────────────────────────────────────────────────────────────────


async def _chunks(body: bytes):
    yield body


class Upstream:
    """Records every outbound request and answers with a canned response."""

    def __init__(self, status_code: int = 200, body: bytes = b"upstream body", error=None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("upstream down", request=request)
        return httpx.Response(
            self.status_code,
            content=_chunks(self.body),
            headers={"Content-Type": "text/plain", "Connection": "keep-alive"},
        )


def _config(blacklist_file, *, blockmode: bool = True, patterns=("facebook",)) -> Config:
    config = Config.defaults()
    config.policy.blacklist = blacklist_file(*patterns)
    config.policy.blockmode = blockmode
    config.policy.watch_blacklist = False
    return config


@pytest.fixture
def upstream(monkeypatch):
    recorder = Upstream()
    monkeypatch.setattr(
        "focusgate.main.create_http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
    )
    return recorder


# ─── Readiness ────────────────────────────────────────────────────────────────


class TestReadiness:
    def test_503_before_lifespan(self, blacklist_file):
        app = create_proxy_app(build_gate(_config(blacklist_file)))
        client = TestClient(app)  # no context manager: lifespan not run
        response = client.get("http://example.org/")
        assert response.status_code == 503

    def test_ready_during_lifespan_and_reset_after(self, blacklist_file, upstream):
        gate = build_gate(_config(blacklist_file))
        with TestClient(create_proxy_app(gate)):
            assert gate.ready is True
        assert gate.ready is False


# ─── Forwarding ───────────────────────────────────────────────────────────────


class TestForwarding:
    def test_allowed_host_forwarded_to_original_destination(self, blacklist_file, upstream):
        gate = build_gate(_config(blacklist_file))
        with TestClient(create_proxy_app(gate)) as client:
            response = client.get("http://example.org/search?q=focus")

        assert response.status_code == 200
        assert response.content == b"upstream body"
        assert len(upstream.requests) == 1
        assert str(upstream.requests[0].url) == "http://example.org/search?q=focus"
        assert REDIRECTED_HEADER not in response.headers
        assert len(response.headers[REQUEST_ID_HEADER]) == 26

    def test_denied_host_redirected_to_page_server(self, blacklist_file, upstream):
        gate = build_gate(_config(blacklist_file))
        with TestClient(create_proxy_app(gate)) as client:
            response = client.get("http://www.facebook.com/feed")

        assert response.status_code == 200
        sent = upstream.requests[0]
        assert sent.url.host == "127.0.0.1"
        assert sent.url.port == 8081
        assert sent.url.path == "/feed"
        assert sent.headers["host"] == "127.0.0.1:8081"
        assert response.headers[REDIRECTED_HEADER] == "true"

    def test_blacklisted_host_allowed_outside_focus_time(self, blacklist_file, upstream):
        gate = build_gate(_config(blacklist_file, blockmode=False))
        with TestClient(create_proxy_app(gate)) as client:
            client.get("http://www.facebook.com/")
        assert upstream.requests[0].url.host == "www.facebook.com"

    def test_redirect_uses_configured_web_addr(self, blacklist_file, upstream):
        config = _config(blacklist_file)
        config.web_addr = "10.1.2.3:9000"
        with TestClient(create_proxy_app(build_gate(config))) as client:
            client.get("http://www.facebook.com/")
        assert upstream.requests[0].url.host == "10.1.2.3"
        assert upstream.requests[0].url.port == 9000

    def test_body_and_method_forwarded(self, blacklist_file, upstream):
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            client.post("http://example.org/submit", content=b"payload")
        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert sent.content == b"payload"

    def test_proxy_headers_not_forwarded(self, blacklist_file, upstream):
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            client.get(
                "http://example.org/",
                headers={"Proxy-Connection": "keep-alive", "X-Custom": "kept"},
            )
        sent = upstream.requests[0]
        assert "proxy-connection" not in sent.headers
        assert sent.headers["x-custom"] == "kept"

    def test_upstream_error_status_passed_through(self, blacklist_file, upstream):
        upstream.status_code = 404
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            response = client.get("http://example.org/missing")
        assert response.status_code == 404

    def test_hop_by_hop_response_headers_stripped(self, blacklist_file, upstream):
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            response = client.get("http://example.org/")
        assert response.headers["content-type"] == "text/plain"
        assert "connection" not in response.headers

    def test_blacklist_reload_applies_to_next_request(self, blacklist_file, upstream):
        gate = build_gate(_config(blacklist_file, patterns=("facebook",)))
        with TestClient(create_proxy_app(gate)) as client:
            client.get("http://reddit.com/")
            gate.blocklist.load(blacklist_file("reddit"))
            client.get("http://reddit.com/")
        assert upstream.requests[0].url.host == "reddit.com"
        assert upstream.requests[1].url.host == "127.0.0.1"


# ─── Failure modes ────────────────────────────────────────────────────────────


class TestFailureModes:
    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError],
    )
    def test_upstream_failure_returns_502(self, blacklist_file, upstream, error):
        upstream.error = error
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            response = client.get("http://example.org/")
        assert response.status_code == 502
        body = response.json()
        assert body["error"]["code"] == "upstream_unavailable"
        assert body["error"]["detail"] == error.__name__
        assert REQUEST_ID_HEADER in response.headers

    def test_redirect_page_server_down_returns_502(self, blacklist_file, upstream):
        upstream.error = httpx.ConnectError
        with TestClient(create_proxy_app(build_gate(_config(blacklist_file)))) as client:
            response = client.get("http://www.facebook.com/")
        assert response.status_code == 502
        assert upstream.requests[0].url.host == "127.0.0.1"


class TestDestinationUrl:
    def _request(self, headers, raw_path=b"/a", query=b"") -> Request:
        return Request(
            {
                "type": "http",
                "method": "GET",
                "scheme": "http",
                "server": ("proxy", 8080),
                "path": raw_path.decode(),
                "raw_path": raw_path,
                "query_string": query,
                "headers": headers,
            }
        )

    def test_missing_host_raises(self):
        with pytest.raises(ValueError):
            destination_url(self._request([]))

    def test_url_from_host_path_and_query(self):
        url = destination_url(self._request([(b"host", b"example.org:8000")], b"/a", b"x=1"))
        assert str(url) == "http://example.org:8000/a?x=1"

    def test_raw_path_with_query_is_split(self):
        url = destination_url(
            self._request([(b"host", b"example.org")], b"/a?x=1", b"x=1")
        )
        assert str(url) == "http://example.org/a?x=1"
