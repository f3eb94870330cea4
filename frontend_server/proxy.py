"""Single-host reverse proxy for everything under /api/."""

import logging
import posixpath
from typing import AsyncIterator, List, Optional, Set, Tuple
from urllib.parse import quote, quote_from_bytes

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import RedirectResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

API_PREFIX = "/api/"

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Printable ASCII; existing %XX escapes survive, raw non-ASCII bytes get escaped
_URL_SAFE = "".join(chr(c) for c in range(0x21, 0x7F))

_DOT_SEGMENTS = {"%2e": ".", "%2e%2e": "..", ".%2e": "..", "%2e.": ".."}

# Hop-by-hop headers that should NOT be forwarded (RFC 7230 §6.1)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-connection",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Added by httpx when absent; the caller's own values (or their absence) win
_CLIENT_DEFAULT_HEADERS = ("accept", "accept-encoding", "user-agent")


def hop_by_hop(connection: Optional[str]) -> Set[str]:
    """Fixed hop-by-hop names plus any header the Connection header lists."""
    names = set(HOP_BY_HOP_HEADERS)
    if connection:
        names.update(token.strip().lower() for token in connection.split(",") if token.strip())
    return names


def join_path(base: str, path: str) -> str:
    """Join the origin's own path and the request path with a single slash."""
    base = base.rstrip("/")
    if not base:
        return path if path.startswith("/") else "/" + path
    return f"{base}/{path.lstrip('/')}"


def clean_path(path: str) -> str:
    """Canonical form of a raw request path.

    Collapses repeated slashes and resolves ``.`` / ``..`` segments, including
    percent-encoded ones, never climbing above ``/``. A trailing slash is kept.
    """
    if not path:
        return "/"
    segments = [_DOT_SEGMENTS.get(s.lower(), s) for s in path.split("/")]
    cleaned = posixpath.normpath("/" + "/".join(segments).lstrip("/"))
    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def raw_path(request: Request) -> str:
    """Still-encoded request path, with any raw non-ASCII bytes escaped."""
    raw = request.scope.get("raw_path")
    if raw:
        return quote_from_bytes(raw.split(b"?", 1)[0], safe=_URL_SAFE)
    return quote(request.url.path, safe=_URL_SAFE)


def raw_query(request: Request) -> str:
    return quote_from_bytes(request.scope.get("query_string", b""), safe=_URL_SAFE)


class BackendProxy:
    """
    Relays requests to one fixed backend origin.

    Only the scheme and host of the request change. Path, query string,
    method, end-to-end headers and body go through untouched, and the
    backend's status, headers and still-encoded body are streamed back.
    """

    def __init__(
        self,
        origin: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.origin = httpx.URL(origin)
        self.logger = logger or logging.getLogger(__name__)
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=False)
            for name in _CLIENT_DEFAULT_HEADERS:
                client.headers.pop(name, None)
        self._client = client

    def target_url(self, request: Request) -> httpx.URL:
        """Backend URL for the request, keeping its path encoding and query.

        Raises a 404 HTTPException if the canonical path is outside /api/.
        """
        path = clean_path(raw_path(request))
        if not path.startswith(API_PREFIX):
            raise HTTPException(status_code=404, detail="Not Found")
        path = join_path(self.origin.path, path)
        query = raw_query(request)
        if query:
            path = f"{path}?{query}"
        return self.origin.copy_with(raw_path=path.encode("ascii"))

    def forward_headers(self, request: Request) -> List[Tuple[str, str]]:
        """
        Request headers for the backend.

        Drops hop-by-hop headers and Host (the client sets the backend's)
        and appends the caller to X-Forwarded-For. X-Forwarded-Host and
        X-Forwarded-Proto sent by the caller are kept; they are only filled
        in when absent.
        """
        dropped = hop_by_hop(request.headers.get("connection"))
        dropped.update({"host", "x-forwarded-for"})
        headers = [(name, value) for name, value in request.headers.items() if name.lower() not in dropped]

        forwarded_for = request.headers.getlist("x-forwarded-for")
        if request.client and request.client.host:
            forwarded_for.append(request.client.host)
        if forwarded_for:
            headers.append(("x-forwarded-for", ", ".join(forwarded_for)))
        if "x-forwarded-host" not in request.headers and "host" in request.headers:
            headers.append(("x-forwarded-host", request.headers["host"]))
        if "x-forwarded-proto" not in request.headers:
            headers.append(("x-forwarded-proto", request.url.scheme))
        return headers

    def response_headers(self, upstream: httpx.Response) -> List[Tuple[str, str]]:
        """Backend response headers minus hop-by-hop ones; repeats are kept."""
        dropped = hop_by_hop(upstream.headers.get("connection"))
        return [
            (name, value)
            for name, value in upstream.headers.multi_items()
            if name.lower() not in dropped
        ]

    def _request_body(self, request: Request) -> Optional[AsyncIterator[bytes]]:
        if "content-length" in request.headers or "transfer-encoding" in request.headers:
            return request.stream()
        return None

    async def handle(self, request: Request) -> Response:
        """Forward one request and stream the backend's answer back.

        A non-canonical path (``//``, ``.`` or ``..`` segments) is answered
        with a 301 to its clean form instead, which may land outside /api/.
        """
        path = raw_path(request)
        cleaned = clean_path(path)
        if cleaned != path:
            query = raw_query(request)
            return RedirectResponse(f"{cleaned}?{query}" if query else cleaned, status_code=301)

        self.logger.info(f"API Proxy: {request.method} {request.url.path}")
        target = self.target_url(request)

        upstream_request = self._client.build_request(
            request.method,
            target,
            headers=self.forward_headers(request),
            content=self._request_body(request),
        )

        try:
            upstream = await self._client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            self.logger.error(f"Proxy timeout for {target}: {e!r}")
            raise HTTPException(status_code=504, detail="Gateway timeout")
        except httpx.RequestError as e:
            self.logger.error(f"Proxy error for {target}: {e!r}")
            raise HTTPException(status_code=502, detail="Bad gateway - cannot reach backend")

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in self.response_headers(upstream)
        ]
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
