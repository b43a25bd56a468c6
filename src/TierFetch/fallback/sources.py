"""Builders for acquisition sources.

Each builder returns an :class:`AcquisitionSource` whose ``attempt`` produces
a :class:`Capability` or raises :class:`SourceUnavailable`:

- ``factory_source``: calls a sync or async factory
- ``import_source``: imports one ``module:attribute`` factory and calls it
  with the configuration
- ``probe_source``: checks a remote API with a GET and, on a 2xx, builds an
  HTTP-backed fetch manager against it

``build_sources`` turns the configured list into sources, preserving order.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from typing import Any, Callable, List, Optional

import httpx

from TierFetch.cache.capability import Capability
from TierFetch.cache.manager import FetchCacheManager
from TierFetch.cache.transport import HttpxTransport, build_async_client
from TierFetch.config.models import SourceConfig, TierFetchConfig
from TierFetch.errors import ConfigurationError, SourceUnavailable

from .types import AcquisitionSource

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]


def factory_source(source_id: str, factory: Callable[[], Any]) -> AcquisitionSource:
    """Wrap a sync or async capability factory."""

    async def attempt() -> Capability:
        produced = factory()
        if inspect.isawaitable(produced):
            produced = await produced
        return produced

    return AcquisitionSource(source_id, attempt)


def _split_target(target: str) -> tuple[str, str]:
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"import target must be 'module:attribute', got {target!r}")
    return module_name, attribute


def import_source(
    source_id: str,
    target: str,
    config: Optional[TierFetchConfig] = None,
) -> AcquisitionSource:
    """Import ``module:attribute`` and call it with ``config``.

    The import runs in a worker thread so a slow import cannot stall the
    event loop past its deadline.
    """
    module_name, attribute = _split_target(target)
    config = config or TierFetchConfig()

    async def attempt() -> Capability:
        try:
            module = await asyncio.to_thread(importlib.import_module, module_name)
        except ImportError as e:
            raise SourceUnavailable(source_id, f"cannot import {module_name}: {e}") from e

        factory = getattr(module, attribute, None)
        if not callable(factory):
            raise SourceUnavailable(source_id, f"{target} is not a callable factory")

        produced = factory(config)
        if inspect.isawaitable(produced):
            produced = await produced
        return produced

    return AcquisitionSource(source_id, attempt)


def probe_source(
    source_id: str,
    base_url: str,
    config: Optional[TierFetchConfig] = None,
    *,
    probe_path: str = "",
    client_factory: Optional[ClientFactory] = None,
) -> AcquisitionSource:
    """Probe ``base_url`` and build an HTTP-backed manager when it answers 2xx."""
    config = config or TierFetchConfig()
    base = base_url.rstrip("/")
    probe_url = f"{base}/{probe_path.lstrip('/')}" if probe_path else base

    async def attempt() -> Capability:
        client = client_factory() if client_factory else build_async_client(config)
        try:
            response = await client.get(probe_url)
        except httpx.HTTPError as e:
            await client.aclose()
            raise SourceUnavailable(source_id, f"probe {probe_url} failed: {e}") from e
        except BaseException:
            # Cancelled, or failed outside httpx: the client is still ours to close.
            await client.aclose()
            raise

        if not response.is_success:
            await client.aclose()
            raise SourceUnavailable(
                source_id, f"probe {probe_url} returned HTTP {response.status_code}"
            )

        LOGGER.debug(f"Probe {probe_url} answered {response.status_code}")
        transport = HttpxTransport(base_url=base, client=client, owns_client=True)
        return FetchCacheManager(transport, ttl_ms=config.cache.ttl_ms)

    return AcquisitionSource(source_id, attempt)


def source_from_config(
    source: SourceConfig,
    config: TierFetchConfig,
    client_factory: Optional[ClientFactory] = None,
) -> AcquisitionSource:
    if source.kind == "probe":
        if not source.url:
            raise ConfigurationError(f"probe source '{source.id}' requires url")
        return probe_source(
            source.id,
            source.url,
            config,
            probe_path=source.probe_path,
            client_factory=client_factory,
        )
    if not source.target:
        raise ConfigurationError(f"import source '{source.id}' requires target")
    return import_source(source.id, source.target, config)


def build_sources(
    config: TierFetchConfig,
    client_factory: Optional[ClientFactory] = None,
) -> List[AcquisitionSource]:
    """Build sources from configuration, in configured order."""
    return [source_from_config(s, config, client_factory) for s in config.sources]


__all__ = [
    "build_sources",
    "factory_source",
    "import_source",
    "probe_source",
    "source_from_config",
]
