"""Serving the bundled SPA build (index.html, assets/, root files)."""

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from fastapi import Request
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.types import Scope

from frontend_server.errors import StartupError

# Files a Vite build drops next to index.html that browsers ask for by name
ROOT_FILES = ("favicon.ico", "robots.txt", "manifest.json")


class SPAStaticFiles(StaticFiles):
    """StaticFiles that answers client-side routes with the index document.

    A missing path without a file extension (``/dashboard/settings``) is a
    deep link into the client router and gets ``index.html``; a missing path
    with one (``/logo.png``) is a real 404. That includes deep links whose last
    segment merely contains a dot, such as ``/users/john.doe``: they look like
    file names and get a 404, not ``index.html``.
    """

    def __init__(self, *, directory: Union[str, Path], index: str = "index.html", fallback: bool = True, **kwargs):
        super().__init__(directory=directory, html=True, **kwargs)
        self.index = index
        self.fallback = fallback

    def is_deep_link(self, path: str) -> bool:
        return self.fallback and not PurePosixPath(path).suffix

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404 or not self.is_deep_link(path):
                raise
        return await super().get_response(self.index, scope)

    async def get_exact_response(self, path: str, scope: Scope) -> Response:
        """Serve ``path`` or 404, never the index document."""
        return await super().get_response(path, scope)


class AssetServer:
    """Read-only view of the asset directory shared by every static route."""

    def __init__(
        self,
        directory: Union[str, Path],
        *,
        spa_fallback: bool = True,
        index: str = "index.html",
        logger: Optional[logging.Logger] = None,
    ):
        root = Path(directory)
        if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
            raise StartupError(f"Failed to open static bundle directory: {root}")

        self.root = root.resolve()
        self.logger = logger or logging.getLogger(__name__)
        self.site = SPAStaticFiles(directory=self.root, index=index, fallback=spa_fallback)

        if not (self.root / index).is_file():
            self.logger.warning(f"{index} not found in {self.root}; / and deep links will return 404")

    async def serve_file(self, request: Request) -> Response:
        """Endpoint for /assets/** and the named root files: exact match only."""
        path = self.site.get_path(request.scope)
        return await self.site.get_exact_response(path, request.scope)
