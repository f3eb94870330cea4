"""FastAPI application factory: static SPA bundle plus /api reverse proxy."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from frontend_server import __version__
from frontend_server.config import Settings
from frontend_server.proxy import BackendProxy
from frontend_server.routing import build_routes
from frontend_server.static import AssetServer


def create_app(
    settings: Settings,
    *,
    proxy: Optional[BackendProxy] = None,
    assets: Optional[AssetServer] = None,
) -> FastAPI:
    """
    Assemble the app from already-validated settings.

    ``proxy`` and ``assets`` can be injected (tests hand in a proxy backed
    by ``httpx.MockTransport``). Raises StartupError if the asset directory
    cannot be opened.
    """
    # Open the bundle first so a bad DIST_DIR fails before any client exists
    if assets is None:
        assets = AssetServer(settings.DIST_DIR, spa_fallback=settings.SPA_FALLBACK)
    if proxy is None:
        proxy = BackendProxy(settings.backend_origin, timeout=settings.PROXY_TIMEOUT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await proxy.aclose()

    app = FastAPI(
        title="Frontend Server",
        version=__version__,
        lifespan=lifespan,
        routes=build_routes(proxy, assets),
        # Every path belongs to the route table, including /docs
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.proxy = proxy
    app.state.assets = assets
    return app
