# === NAVMAP v1 ===
# {
#   "module": "TierFetch.cache.manager",
#   "purpose": "Caching fetch manager with TTL freshness, in-flight de-duplication and observer fan-out.",
#   "sections": [
#     {
#       "id": "cacheentry",
#       "name": "CacheEntry",
#       "anchor": "class-cacheentry",
#       "kind": "class"
#     },
#     {
#       "id": "cachestats",
#       "name": "CacheStats",
#       "anchor": "class-cachestats",
#       "kind": "class"
#     },
#     {
#       "id": "fetchcachemanager",
#       "name": "FetchCacheManager",
#       "anchor": "class-fetchcachemanager",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Fetch/Cache Manager

The capability handed out by a successful acquisition. Given a key it
returns cached data while fresh, otherwise performs one underlying fetch,
stores the result with a timestamp and notifies subscribed observers.

Design:
- Keys are normalized with :func:`TierFetch.cache.keys.derive_cache_key`
- An entry older than ``ttl_ms`` is treated as absent by ``fetch``
- Concurrent callers for the same key share a single in-flight future
- Failures reach every awaiting caller as :class:`FetchFailed` and never
  touch the cache; the previous entry stays where it was
- ``invalidate`` only affects the cache, never in-flight work

All state is owned by one asyncio event loop. Registration of an in-flight
fetch and the cache write that completes it happen without an intervening
``await``, which is what keeps the at-most-one-fetch-per-key invariant
without locks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from TierFetch.cache.capability import Capability
from TierFetch.cache.keys import derive_cache_key
from TierFetch.cache.observers import ObserverRegistry
from TierFetch.errors import FetchFailed

LOGGER = logging.getLogger(__name__)

Transport = Callable[[str], Awaitable[Any]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """Cached value for one normalized key. Replaced wholesale on refresh."""

    key: str
    value: Any
    stored_at: float

    def age_ms(self, now: float) -> float:
        return (now - self.stored_at) * 1000.0


@dataclass
class CacheStats:
    """Running counters for one manager."""

    hits: int = 0
    misses: int = 0
    deduplicated: int = 0
    failures: int = 0
    notifications: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "deduplicated": self.deduplicated,
            "failures": self.failures,
            "notifications": self.notifications,
        }


def _consume_exception(future: "asyncio.Future[Any]") -> None:
    if not future.cancelled():
        future.exception()


class FetchCacheManager(Capability):
    """Caching fetch manager.

    Attributes:
        transport: Coroutine function ``transport(key) -> data`` performing the
            underlying request for a normalized key
        ttl_ms: Freshness window for cache entries
        clock: Monotonic clock in seconds (injectable for tests)
        stats: Hit/miss/de-duplication counters
    """

    def __init__(
        self,
        transport: Transport,
        ttl_ms: int,
        *,
        clock: Clock = time.monotonic,
        observers: Optional[ObserverRegistry] = None,
        key_normalizer: Callable[[str, Optional[Mapping[str, Any]]], str] = derive_cache_key,
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        super().__init__(observers)
        self.transport = transport
        self.ttl_ms = ttl_ms
        self.clock = clock
        self.stats = CacheStats()
        self._key_normalizer = key_normalizer
        self._cache: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch(self, key: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Return data for ``key``, from cache when fresh.

        Raises:
            FetchFailed: The underlying fetch for this key failed. Every caller
                awaiting the same in-flight request receives the failure.
        """
        cache_key = self._key_normalizer(key, params)

        entry = self._fresh_entry(cache_key)
        if entry is not None:
            self.stats.hits += 1
            LOGGER.debug("Cache hit for %s", cache_key)
            return entry.value

        pending = self._in_flight.get(cache_key)
        if pending is not None and pending.cancelled():
            # Cancelled before its coroutine ever ran, so it never unregistered.
            del self._in_flight[cache_key]
            pending = None
        if pending is not None:
            self.stats.deduplicated += 1
            LOGGER.debug("Joining in-flight fetch for %s", cache_key)
            return await asyncio.shield(pending)

        self.stats.misses += 1
        future = asyncio.ensure_future(self._perform(cache_key))
        future.add_done_callback(_consume_exception)
        self._in_flight[cache_key] = future
        return await asyncio.shield(future)

    async def _perform(self, cache_key: str) -> Any:
        started = self.clock()
        try:
            value = await self.transport(cache_key)
        except Exception as exc:
            self.stats.failures += 1
            LOGGER.warning("Fetch failed for %s: %s", cache_key, exc)
            if isinstance(exc, FetchFailed):
                raise
            raise FetchFailed(cache_key, f"Fetch failed for '{cache_key}': {exc}") from exc
        else:
            self._cache[cache_key] = CacheEntry(key=cache_key, value=value, stored_at=self.clock())
        finally:
            self._in_flight.pop(cache_key, None)

        LOGGER.debug(
            "Fetched %s in %.0f ms", cache_key, max(0.0, (self.clock() - started) * 1000.0)
        )
        self.stats.notifications += self.observers.notify(value)
        return value

    def _fresh_entry(self, cache_key: str) -> Optional[CacheEntry]:
        entry = self._cache.get(cache_key)
        if entry is None:
            return None
        if entry.age_ms(self.clock()) >= self.ttl_ms:
            return None
        return entry

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    def invalidate(self, key: str, params: Optional[Mapping[str, Any]] = None) -> None:
        """Remove the cache entry for ``key``; in-flight work is left running."""
        cache_key = self._key_normalizer(key, params)
        if self._cache.pop(cache_key, None) is not None:
            LOGGER.debug("Invalidated %s", cache_key)

    def peek(
        self,
        key: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        allow_stale: bool = False,
    ) -> Optional[CacheEntry]:
        """Return the entry for ``key`` without fetching.

        Expired entries are only returned with ``allow_stale=True``; ``fetch``
        never returns them.
        """
        cache_key = self._key_normalizer(key, params)
        if allow_stale:
            return self._cache.get(cache_key)
        return self._fresh_entry(cache_key)

    def is_in_flight(self, key: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        return self._key_normalizer(key, params) in self._in_flight

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self.clock()
        expired = [k for k, e in self._cache.items() if e.age_ms(now) >= self.ttl_ms]
        for cache_key in expired:
            del self._cache[cache_key]
        if expired:
            LOGGER.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        """Release the transport (e.g. its HTTP client) when it supports closing."""
        aclose = getattr(self.transport, "aclose", None)
        if aclose is not None:
            await aclose()

    def __len__(self) -> int:
        return len(self._cache)

    def __str__(self) -> str:
        return (
            f"{type(self).__name__}: entries={len(self._cache)}, "
            f"in_flight={len(self._in_flight)}, ttl={self.ttl_ms}ms"
        )


__all__ = ["CacheEntry", "CacheStats", "Clock", "FetchCacheManager", "Transport"]
