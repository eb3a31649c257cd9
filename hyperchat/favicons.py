"""
Favicon fetching for service columns.

Each service's icon is looked up at its home origin, trying the classic
/favicon.ico first and /apple-touch-icon.png second. Results (including
"no icon") are cached in memory per origin for the lifetime of the
fetcher, so reopening a window does not hit the network again.

Transient transport errors are retried by tenacity; HTTP error statuses
and non-image responses simply move on to the next path.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from hyperchat.config.constants import FAVICON_PATHS, FAVICON_TIMEOUT_SECONDS
from hyperchat.config.schema import ServiceDescriptor
from hyperchat.retry_config import create_favicon_retry_decorator

logger = logging.getLogger(__name__)

# Browsers serve .ico files with many content types, so they are accepted by path
ICON_CONTENT_TYPES = ("image/", "application/octet-stream")


@dataclass(frozen=True)
class Favicon:
    """A fetched icon."""

    url: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class FaviconFetcher:
    """
    Fetch and cache service favicons.

    Args:
        timeout: Per-request timeout in seconds
    """

    def __init__(self, timeout: float = FAVICON_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._cache: dict[str, Favicon | None] = {}

    def cached(self, descriptor: ServiceDescriptor) -> Favicon | None:
        return self._cache.get(descriptor.origin)

    async def fetch(self, descriptor: ServiceDescriptor) -> Favicon | None:
        """
        Fetch the favicon of one service.

        Returns:
            Favicon, or None if no path yielded an image
        """
        async with self._client() as client:
            return await self._fetch_with(client, descriptor)

    async def fetch_all(
        self, descriptors: Iterable[ServiceDescriptor]
    ) -> dict[str, Favicon | None]:
        """
        Fetch favicons for several services concurrently.

        Returns:
            dict mapping service id to its Favicon (or None)
        """
        descriptors = list(descriptors)
        async with self._client() as client:
            results = await asyncio.gather(
                *(self._fetch_with(client, descriptor) for descriptor in descriptors)
            )
        return {
            descriptor.id: favicon
            for descriptor, favicon in zip(descriptors, results, strict=True)
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    async def _fetch_with(
        self, client: httpx.AsyncClient, descriptor: ServiceDescriptor
    ) -> Favicon | None:
        origin = descriptor.origin
        if origin in self._cache:
            return self._cache[origin]

        favicon = None
        for path in FAVICON_PATHS:
            url = f"{origin}{path}"
            try:
                response = await self._get(client, url)
            except httpx.HTTPError as e:
                logger.debug(f"[{descriptor.id}] Favicon request failed: {url}: {e}")
                continue

            content_type = response.headers.get("content-type", "").split(";")[0].strip()
            if response.status_code != 200 or not response.content:
                logger.debug(f"[{descriptor.id}] No favicon at {url} ({response.status_code})")
                continue
            if not (path.endswith(".ico") or content_type.startswith(ICON_CONTENT_TYPES)):
                logger.debug(f"[{descriptor.id}] Ignoring {url}: content type {content_type}")
                continue

            favicon = Favicon(url=url, content_type=content_type, data=response.content)
            logger.info(f"[{descriptor.id}] Favicon: {url} ({favicon.size} bytes)")
            break

        self._cache[origin] = favicon
        return favicon

    @create_favicon_retry_decorator()
    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        return await client.get(url)
