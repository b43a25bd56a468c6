"""
Timeout Race Tests

Covers the race primitive used for every source attempt:
- Value and error settlement before the deadline
- Expiry, with the losing attempt abandoned rather than cancelled
- Non-positive deadlines never start the attempt
"""

import asyncio
import gc

from TierFetch.cache.capability import StubCapability
from TierFetch.fallback.race import race
from TierFetch.fallback.types import Completed, Expired


class TestRaceSettles:
    """Attempts that finish inside the deadline."""

    def test_value_before_deadline(self):
        async def attempt():
            await asyncio.sleep(0.001)
            return "ready"

        result = asyncio.run(race(attempt, 500))

        assert isinstance(result, Completed)
        assert result.succeeded
        assert result.value == "ready"
        assert result.elapsed_ms >= 0

    def test_error_before_deadline(self):
        async def attempt():
            raise RuntimeError("boom")

        result = asyncio.run(race(attempt, 500))

        assert isinstance(result, Completed)
        assert not result.succeeded
        assert isinstance(result.error, RuntimeError)
        assert result.value is None

    def test_sync_callable_is_accepted(self):
        result = asyncio.run(race(lambda: 42, 500))

        assert isinstance(result, Completed)
        assert result.value == 42


class TestRaceExpires:
    """Attempts that lose to the deadline."""

    def test_slow_attempt_expires(self):
        async def attempt():
            await asyncio.sleep(1.0)
            return "late"

        result = asyncio.run(race(attempt, 20))

        assert isinstance(result, Expired)
        assert result.deadline_ms == 20
        assert result.started

    def test_losing_attempt_keeps_running(self):
        finished = []

        async def attempt():
            await asyncio.sleep(0.05)
            finished.append(True)
            return "late"

        async def scenario():
            outcome = await race(attempt, 10)
            await asyncio.sleep(0.15)
            return outcome

        result = asyncio.run(scenario())

        assert isinstance(result, Expired)
        assert finished == [True]

    def test_late_failure_is_not_reported_as_unhandled(self):
        reported = []

        async def attempt():
            await asyncio.sleep(0.03)
            raise RuntimeError("late failure")

        async def scenario():
            loop = asyncio.get_running_loop()
            loop.set_exception_handler(lambda _loop, context: reported.append(context))
            outcome = await race(attempt, 5)
            await asyncio.sleep(0.1)
            gc.collect()
            return outcome

        result = asyncio.run(scenario())

        assert isinstance(result, Expired)
        assert reported == []

    def test_non_positive_deadline_never_starts_attempt(self):
        calls = []

        def attempt():
            calls.append(1)
            return "never"

        zero = asyncio.run(race(attempt, 0))
        negative = asyncio.run(race(attempt, -5))

        assert isinstance(zero, Expired) and not zero.started
        assert isinstance(negative, Expired) and negative.deadline_ms == -5
        assert calls == []

    def test_capability_produced_after_deadline_is_closed(self):
        closed = []

        class ClosingCapability(StubCapability):
            async def aclose(self):
                closed.append(self)

        async def attempt():
            await asyncio.sleep(0.03)
            return ClosingCapability()

        async def scenario():
            outcome = await race(attempt, 5)
            await asyncio.sleep(0.1)
            return outcome

        result = asyncio.run(scenario())

        assert isinstance(result, Expired)
        assert len(closed) == 1

    def test_capability_won_in_time_is_left_open(self):
        closed = []

        class ClosingCapability(StubCapability):
            async def aclose(self):
                closed.append(self)

        async def scenario():
            outcome = await race(ClosingCapability, 500)
            await asyncio.sleep(0.01)
            return outcome

        result = asyncio.run(scenario())

        assert isinstance(result, Completed)
        assert closed == []
