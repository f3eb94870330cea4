"""Route table: /api/ to the backend, everything else to the static bundle."""

from typing import List

from starlette.routing import BaseRoute, Mount, Route

from frontend_server.proxy import API_PREFIX, PROXY_METHODS, BackendProxy
from frontend_server.static import ROOT_FILES, AssetServer

ASSETS_PREFIX = "/assets/"

STATIC_METHODS = ["GET", "HEAD"]


def build_routes(proxy: BackendProxy, assets: AssetServer) -> List[BaseRoute]:
    """
    Ordered route table, most specific pattern first.

    Starlette matches in list order, so the catch-all must stay last:
      /api/**            -> backend proxy
      /assets/**         -> asset directory, exact files only
      /favicon.ico, ...  -> asset directory, exact files only
      /**                -> asset directory with SPA fallback
    """
    routes: List[BaseRoute] = [
        Route(API_PREFIX + "{path:path}", proxy.handle, methods=PROXY_METHODS, name="api_proxy"),
        Route(ASSETS_PREFIX + "{path:path}", assets.serve_file, methods=STATIC_METHODS, name="assets"),
    ]
    routes += [
        Route(f"/{name}", assets.serve_file, methods=STATIC_METHODS, name=name)
        for name in ROOT_FILES
    ]
    routes.append(Mount("/", app=assets.site, name="site"))
    return routes
