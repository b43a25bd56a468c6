"""TierFetch: tiered capability acquisition with a caching fetch manager."""

from importlib.metadata import PackageNotFoundError, version

from TierFetch.cache import (
    EMPTY_RESULT,
    Capability,
    FetchCacheManager,
    ObserverRegistry,
    StubCapability,
    derive_cache_key,
)
from TierFetch.errors import (
    AllSourcesExhausted,
    ConfigurationError,
    FetchFailed,
    SourceTimedOut,
    SourceUnavailable,
    TierFetchError,
)
from TierFetch.fallback import (
    AcquisitionSource,
    CapabilityLoader,
    LoaderResult,
    LoaderState,
    SourceChainResolver,
    acquire_capability,
    race,
    wait_for_capability,
)

try:
    __version__ = version("tierfetch")
except PackageNotFoundError:  # pragma: no cover - source checkout
    __version__ = "0.0.0"

__all__ = [
    "AcquisitionSource",
    "AllSourcesExhausted",
    "Capability",
    "CapabilityLoader",
    "ConfigurationError",
    "EMPTY_RESULT",
    "FetchCacheManager",
    "FetchFailed",
    "LoaderResult",
    "LoaderState",
    "ObserverRegistry",
    "SourceChainResolver",
    "SourceTimedOut",
    "SourceUnavailable",
    "StubCapability",
    "TierFetchError",
    "acquire_capability",
    "derive_cache_key",
    "race",
    "wait_for_capability",
]
