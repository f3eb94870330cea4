import inspect

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from frontend_server.config import Settings
from frontend_server.main import create_app
from frontend_server.proxy import BackendProxy
from frontend_server.static import AssetServer

BACKEND_ORIGIN = "http://backend.test:8080"

ENV_VARS = (
    "FRONTEND_PORT",
    "FRONTEND_HOST",
    "BACKEND_URL",
    "DIST_DIR",
    "SPA_FALLBACK",
    "PROXY_TIMEOUT",
    "LOG_LEVEL",
)

INDEX_HTML = b"<!doctype html><html><body><div id=\"root\"></div></body></html>"
APP_JS = b"console.log('app');\n"


class _ReplayStream(httpx.AsyncByteStream):
    """Unread async stream over the raw (still-encoded) body of a built response."""

    def __init__(self, raw: bytes):
        self._raw = raw

    async def __aiter__(self):
        yield self._raw


class FakeBackend:
    """httpx.MockTransport handler that records what the proxy sent."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json={"ok": True})

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        result = self.handler(request)
        if inspect.isawaitable(result):
            result = await result
        # Responses built with content are read eagerly; hand the proxy an
        # unread stream so it can relay the raw body as a real backend would.
        raw = b"".join(result.stream)
        return httpx.Response(
            result.status_code,
            headers=result.headers.multi_items(),
            stream=_ReplayStream(raw),
            extensions=result.extensions,
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def dist(tmp_path):
    root = tmp_path / "dist"
    (root / "assets").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "robots.txt").write_text("User-agent: *\n")
    (root / "manifest.json").write_text('{"name": "test"}')
    (root / "assets" / "app.js").write_bytes(APP_JS)
    (root / "docs" / "guide.html").write_text("<p>guide</p>")
    # Outside the asset root, must never be served
    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def settings(dist):
    return Settings(_env_file=None, BACKEND_URL=BACKEND_ORIGIN, DIST_DIR=dist)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def proxy(backend):
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    yield BackendProxy(BACKEND_ORIGIN, client=client)
    await client.aclose()


@pytest.fixture
def assets(dist):
    return AssetServer(dist)


@pytest.fixture
def app(settings, proxy, assets):
    return create_app(settings, proxy=proxy, assets=assets)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
