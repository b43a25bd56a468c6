"""HTTPX-backed default transport for the fetch/cache manager.

Responsibilities
----------------
- Perform one GET per normalized cache key against an optional base URL
- Decode JSON responses, fall back to text for anything else
- Raise on non-2xx statuses so the manager reports :class:`FetchFailed`
- Allow callers to inject a preconfigured :class:`httpx.AsyncClient`
  (e.g., wrapping :class:`httpx.MockTransport` in tests)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from TierFetch.cache.manager import FetchCacheManager
from TierFetch.config.models import TierFetchConfig

LOGGER = logging.getLogger(__name__)


def build_async_client(
    config: Optional[TierFetchConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Construct an :class:`httpx.AsyncClient` from the HTTP settings."""
    http = (config or TierFetchConfig()).http
    headers: Dict[str, str] = {"User-Agent": http.user_agent}
    headers.update(http.headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(http.timeout_s),
        headers=headers,
        follow_redirects=True,
        transport=transport,
    )


def decode_response(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        return response.json()
    return response.text


class HttpxTransport:
    """Async callable ``transport(key) -> data`` issuing GET requests.

    Relative keys are resolved against ``base_url``; absolute URL keys are
    requested as-is.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[TierFetchConfig] = None,
        owns_client: Optional[bool] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self._owns_client = client is None if owns_client is None else owns_client
        self.client = client or build_async_client(config)

    def resolve_url(self, key: str) -> str:
        if "://" in key or not self.base_url:
            return key
        return f"{self.base_url}/{key.lstrip('/')}"

    async def __call__(self, key: str) -> Any:
        url = self.resolve_url(key)
        response = await self.client.get(url)
        LOGGER.debug("GET %s -> %s", url, response.status_code)
        response.raise_for_status()
        return decode_response(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def build_http_capability(
    config: Optional[TierFetchConfig] = None,
    *,
    base_url: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchCacheManager:
    """Build a :class:`FetchCacheManager` over :class:`HttpxTransport`.

    Also usable as an import-source target
    (``TierFetch.cache.transport:build_http_capability``).
    """
    config = config or TierFetchConfig()
    transport = HttpxTransport(base_url=base_url, client=client, config=config)
    manager = FetchCacheManager(transport, ttl_ms=config.cache.ttl_ms)
    LOGGER.debug("Built HTTP capability (base_url=%s, ttl=%dms)", base_url, config.cache.ttl_ms)
    return manager


__all__ = ["HttpxTransport", "build_async_client", "build_http_capability", "decode_response"]
