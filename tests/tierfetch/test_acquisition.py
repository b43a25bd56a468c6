"""
Capability Loader Tests

Covers the loader state machine and the process-wide default loader:
- Single resolution shared by concurrent callers
- Memoized settlement after the first pass
- Stub fallback when every source fails
- Default loader configuration and wait_for_capability
"""

import asyncio

import pytest

from TierFetch.cache.capability import EMPTY_RESULT, StubCapability
from TierFetch.cache.manager import FetchCacheManager
from TierFetch.errors import SourceUnavailable
from TierFetch.fallback.acquisition import (
    CapabilityLoader,
    acquire_capability,
    configure_default_loader,
    get_default_loader,
    wait_for_capability,
)
from TierFetch.fallback.telemetry import InMemorySink
from TierFetch.fallback.types import STUB_SOURCE_ID, AcquisitionSource, LoaderState


async def _transport(key):
    return {"key": key}


def _counting_source(source_id, counter, *, delay=0.0, fail=False):
    async def attempt():
        counter.append(source_id)
        if delay:
            await asyncio.sleep(delay)
        if fail:
            raise SourceUnavailable(source_id)
        return FetchCacheManager(_transport, ttl_ms=1_000)

    return AcquisitionSource(source_id, attempt)


class TestSingleResolution:
    """The chain runs once per loader, however many callers there are."""

    def test_concurrent_callers_share_one_pass(self):
        calls = []
        loader = CapabilityLoader([_counting_source("only", calls, delay=0.02)], 500)

        async def scenario():
            return await asyncio.gather(*(loader.acquire() for _ in range(5)))

        results = asyncio.run(scenario())

        assert calls == ["only"]
        assert all(result is results[0] for result in results)
        assert results[0].success
        assert results[0].source_used == "only"

    def test_settled_result_is_memoized(self):
        calls = []
        loader = CapabilityLoader([_counting_source("only", calls)], 500)

        async def scenario():
            first = await loader.acquire()
            second = await loader.acquire()
            return first, second

        first, second = asyncio.run(scenario())

        assert first is second
        assert first.capability is second.capability
        assert calls == ["only"]
        assert loader.result is first

    def test_state_transitions(self):
        calls = []
        loader = CapabilityLoader([_counting_source("only", calls, delay=0.01)], 500)
        observed = []

        async def scenario():
            observed.append(loader.state)
            task = asyncio.ensure_future(loader.acquire())
            await asyncio.sleep(0)
            observed.append(loader.state)
            await task
            observed.append(loader.state)

        asyncio.run(scenario())

        assert observed == [
            LoaderState.UNSTARTED,
            LoaderState.RESOLVING,
            LoaderState.SETTLED_SUCCESS,
        ]
        assert loader.state.is_settled

    def test_cancelled_caller_does_not_cancel_resolution(self):
        calls = []
        loader = CapabilityLoader([_counting_source("only", calls, delay=0.03)], 500)

        async def scenario():
            doomed = asyncio.ensure_future(loader.acquire())
            survivor = asyncio.ensure_future(loader.acquire())
            await asyncio.sleep(0.005)
            doomed.cancel()
            result = await survivor
            return doomed, result

        doomed, result = asyncio.run(scenario())

        assert doomed.cancelled()
        assert result.success
        assert calls == ["only"]

    def test_second_source_used_after_failure(self):
        calls = []
        sink = InMemorySink()
        loader = CapabilityLoader(
            [
                _counting_source("primary", calls, fail=True),
                _counting_source("secondary", calls),
            ],
            200,
            telemetry=sink,
        )

        result = asyncio.run(loader.acquire())

        assert result.success
        assert result.source_used == "secondary"
        assert [o.outcome for o in result.attempts] == ["failed", "success"]
        assert len(sink.events) == 2
        assert result.describe()["attempts"][0][:2] == ("primary", "failed")


class TestInterruptedResolution:
    """A pass cut short by its event loop shutting down is not memoized."""

    def test_acquire_after_loop_shutdown_resolves_again(self):
        calls = []
        loader = CapabilityLoader([_counting_source("slow", calls, delay=0.2)], 1_000)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(asyncio.wait_for(loader.acquire(), 0.01))

        assert loader.state == LoaderState.UNSTARTED
        assert loader.result is None

        result = asyncio.run(loader.acquire())

        assert result.success
        assert result.source_used == "slow"
        assert loader.state == LoaderState.SETTLED_SUCCESS
        assert calls == ["slow", "slow"]

    def test_default_loader_recovers_after_loop_shutdown(self):
        calls = []
        configure_default_loader(
            CapabilityLoader([_counting_source("slow", calls, delay=0.2)], 1_000)
        )

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(asyncio.wait_for(acquire_capability(), 0.01))

        result = asyncio.run(acquire_capability())

        assert result.success
        assert get_default_loader().state == LoaderState.SETTLED_SUCCESS


class TestStubFallback:
    """Exhaustion settles with the inert capability instead of raising."""

    def test_all_sources_fail(self):
        calls = []
        loader = CapabilityLoader(
            [
                _counting_source("a", calls, fail=True),
                _counting_source("b", calls, delay=1.0),
            ],
            20,
        )

        async def scenario():
            result = await loader.acquire()
            data = await result.capability.fetch("anything")
            return result, data

        result, data = asyncio.run(scenario())

        assert not result.success
        assert result.source_used == STUB_SOURCE_ID
        assert result.capability.is_stub
        assert data is EMPTY_RESULT
        assert loader.state == LoaderState.SETTLED_STUB
        assert len(result.attempts) == 2

    def test_no_sources(self):
        loader = CapabilityLoader([], 100)

        result = asyncio.run(loader.acquire())

        assert not result.success
        assert isinstance(result.capability, StubCapability)
        assert result.attempts == ()

    def test_unexpected_resolver_error_settles_stub(self):
        loader = CapabilityLoader([], 100)

        async def broken():
            raise RuntimeError("resolver bug")

        loader.resolver.resolve = broken

        result = asyncio.run(loader.acquire())

        assert not result.success
        assert loader.state == LoaderState.SETTLED_STUB

    def test_custom_stub_factory(self):
        class QuietStub(StubCapability):
            pass

        loader = CapabilityLoader([], 100, stub_factory=QuietStub)

        result = asyncio.run(loader.acquire())

        assert isinstance(result.capability, QuietStub)


class TestDefaultLoader:
    """Process-wide loader helpers."""

    def test_configure_and_acquire(self):
        calls = []
        loader = configure_default_loader(CapabilityLoader([_counting_source("x", calls)], 100))

        result = asyncio.run(acquire_capability())

        assert get_default_loader() is loader
        assert result.source_used == "x"

    def test_acquire_without_loader_raises(self):
        with pytest.raises(RuntimeError, match="no default loader"):
            asyncio.run(acquire_capability())

    def test_reconfigure_after_start_rejected(self):
        calls = []
        first = configure_default_loader(CapabilityLoader([_counting_source("x", calls)], 100))
        asyncio.run(first.acquire())

        with pytest.raises(RuntimeError, match="already started"):
            configure_default_loader(CapabilityLoader([], 100))

        assert configure_default_loader(first) is first

    def test_reconfigure_before_start_allowed(self):
        configure_default_loader(CapabilityLoader([], 100))
        replacement = configure_default_loader(CapabilityLoader([], 200))

        assert get_default_loader() is replacement

    def test_wait_without_loader_returns_stub(self, caplog):
        with caplog.at_level("WARNING", logger="TierFetch.fallback.acquisition"):
            capability = asyncio.run(wait_for_capability())

        assert capability.is_stub
        assert "proceeding without wait" in caplog.text

    def test_wait_with_loader_returns_capability(self):
        calls = []
        loader = CapabilityLoader([_counting_source("x", calls)], 100)

        capability = asyncio.run(wait_for_capability(loader))

        assert isinstance(capability, FetchCacheManager)
        assert loader.state == LoaderState.SETTLED_SUCCESS
