"""Shared test fixtures."""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from sentry_tunnel.config import AllowList, TunnelConfig
from sentry_tunnel.services.forwarder import UpstreamForwarder
from sentry_tunnel.services.tunnel import TunnelHandler

SAMPLE_DSN = "https://abc123@o1.ingest.example.com/42"
SAMPLE_ENVELOPE = b'{"dsn":"https://abc123@o1.ingest.example.com/42"}\n{}'
SAMPLE_UPSTREAM_URL = "https://o1.ingest.example.com/api/42/envelope/?sentry_key=abc123"


class StubUpstream:
    """httpx.MockTransport handler that records calls and replays a canned outcome."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        self.content = b'{"id":"event"}'
        self.error: Exception | None = None

    def respond(self, status_code: int, headers: dict[str, str] | None = None, content: bytes = b""):
        self.status_code = status_code
        self.headers = headers or {}
        self.content = content

    def fail(self, error: Exception):
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, headers=self.headers, content=self.content)


class RecordingSink:
    """Diagnostic sink that keeps every (request_id, message, data) call."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict | None]] = []

    def __call__(self, request_id, message, data=None):
        self.calls.append((request_id, message, data))

    @property
    def request_ids(self) -> set[str]:
        return {call[0] for call in self.calls}


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def allow_list() -> AllowList:
    """Permit-all allowlist; override in a test module to restrict."""
    return AllowList()


@pytest.fixture
def tunnel_config(allow_list) -> TunnelConfig:
    return TunnelConfig(allow_list=allow_list, env="test")


@pytest.fixture
async def upstream_client(upstream):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def forwarder(upstream_client) -> UpstreamForwarder:
    return UpstreamForwarder(upstream_client, timeout=5.0, max_concurrent=4)


@pytest.fixture
def diagnostics() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def handler(tunnel_config, forwarder, diagnostics) -> TunnelHandler:
    return TunnelHandler(tunnel_config, forwarder, diagnostics)


@pytest.fixture
def app(tunnel_config, handler):
    """Create a test application wired to the stub upstream."""
    from sentry_tunnel.main import create_app

    _app = create_app(tunnel_config)
    _app.state.tunnel_handler = handler
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
