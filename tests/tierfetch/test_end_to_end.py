"""
End-to-End Acquisition Scenario

A primary source that fails after 10 ms and a secondary that produces a
fetch manager after 5 ms, each with a 50 ms deadline. The loader settles on
the secondary, and two fetches of the same key hit the transport once.
"""

import asyncio

from TierFetch.cache.manager import FetchCacheManager
from TierFetch.errors import SourceUnavailable
from TierFetch.fallback.acquisition import (
    CapabilityLoader,
    configure_default_loader,
    wait_for_capability,
)
from TierFetch.fallback.telemetry import InMemorySink
from TierFetch.fallback.types import AcquisitionSource, LoaderState


def test_secondary_source_serves_cached_fetches():
    transport_calls = []
    notifications = []

    async def transport(key):
        transport_calls.append(key)
        return {"v": 1}

    async def primary():
        await asyncio.sleep(0.010)
        raise SourceUnavailable("primary", "primary offline")

    async def secondary():
        await asyncio.sleep(0.005)
        manager = FetchCacheManager(transport, ttl_ms=60_000)
        manager.subscribe_function(notifications.append)
        return manager

    sink = InMemorySink()
    loader = configure_default_loader(
        CapabilityLoader(
            [AcquisitionSource("primary", primary), AcquisitionSource("secondary", secondary)],
            50,
            telemetry=sink,
        )
    )

    async def scenario():
        result = await loader.acquire()
        capability = await wait_for_capability()
        first = await capability.fetch("item1")
        second = await capability.fetch("item1")
        return result, capability, first, second

    result, capability, first, second = asyncio.run(scenario())

    assert result.success
    assert result.source_used == "secondary"
    assert capability is result.capability
    assert loader.state == LoaderState.SETTLED_SUCCESS
    assert [(e.source, e.outcome) for e in sink.events] == [
        ("primary", "failed"),
        ("secondary", "success"),
    ]
    assert first == second == {"v": 1}
    assert transport_calls == ["item1"]
    assert notifications == [{"v": 1}]
