"""HTTP image fetcher.

All network I/O goes through a single Fetcher instance. The Fetcher
receives an httpx.AsyncClient via constructor injection: whoever builds
the client owns its lifecycle.
"""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
import structlog

from imagecache.errors import TransportError
from imagecache.models.cache import FetchResponse

if TYPE_CHECKING:
    from imagecache.config import FetcherSettings

log = structlog.get_logger()

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
        ),
    )


def proxy_url(url: str, endpoint: str) -> str:
    """Route ``url`` through the image relay at ``endpoint``."""
    return endpoint + quote(url, safe="")


def to_data_uri(content: bytes, content_type: str | None) -> str:
    """Encode image bytes as ``data:<type>;base64,<payload>``."""
    mime = (content_type or _DEFAULT_CONTENT_TYPE).split(";")[0].strip() or _DEFAULT_CONTENT_TYPE
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


class Fetcher:
    """Retrieves image bytes and renders them transport-safe."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings) -> None:
        self._client = client
        self._settings = settings
        # At most one request per pooled connection; the rest queue here, not
        # against the client pool timeout.
        self._slots = asyncio.Semaphore(settings.max_connections)

    async def fetch(self, url: str, *, use_proxy: bool = False) -> FetchResponse:
        """Fetch one URL.

        A non-200 status is returned, not raised; the caller decides whether
        it is fatal. Network failures raise TransportError.
        """
        request_url = proxy_url(url, self._settings.proxy_endpoint) if use_proxy else url

        try:
            async with self._slots:
                response = await self._client.get(request_url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(
                f"Network error fetching {url}: {exc}",
                suggestion="The image host may be temporarily unavailable.",
            ) from exc

        if response.status_code != 200:
            log.info(
                "fetch_status_error",
                url=url,
                status_code=response.status_code,
                proxied=use_proxy,
            )
            return FetchResponse(
                status_code=response.status_code,
                status_message=response.reason_phrase,
            )

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.content),
            proxied=use_proxy,
        )
        return FetchResponse(
            status_code=response.status_code,
            status_message=response.reason_phrase,
            body=to_data_uri(response.content, response.headers.get("content-type")),
        )
