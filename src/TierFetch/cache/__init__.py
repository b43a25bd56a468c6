"""
Fetch/Cache Capability

Provides the capability produced by acquisition:
- Capability contract with real and inert (stub) variants
- TTL-based caching with in-flight de-duplication
- Observer fan-out on every successful fetch
- HTTPX-backed default transport

Public API:
  Capability - Abstract contract
  FetchCacheManager - Real caching implementation
  StubCapability - Inert fallback returning EMPTY_RESULT
  ObserverRegistry - Publish/subscribe list
  derive_cache_key - Key normalization
"""

from .capability import EMPTY_RESULT, Capability, StubCapability
from .keys import derive_cache_key
from .manager import CacheEntry, CacheStats, FetchCacheManager
from .observers import Observer, ObserverRegistry, Unsubscribe

__all__ = [
    "CacheEntry",
    "CacheStats",
    "Capability",
    "EMPTY_RESULT",
    "FetchCacheManager",
    "Observer",
    "ObserverRegistry",
    "StubCapability",
    "Unsubscribe",
    "derive_cache_key",
]
