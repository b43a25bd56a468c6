"""Exception hierarchy shared across capability acquisition and cached fetching.

Acquisition failures are recovered inside the loader and only ever show up
in attempt outcomes and logs. Fetch failures are the one
category surfaced to callers: the awaiting ``fetch`` coroutines receive a
:class:`FetchFailed` chained to the transport error.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "TierFetchError",
    "SourceUnavailable",
    "SourceTimedOut",
    "AllSourcesExhausted",
    "FetchFailed",
    "ConfigurationError",
]


class TierFetchError(RuntimeError):
    """Base exception for acquisition and fetch failures."""


class SourceUnavailable(TierFetchError):
    """Raised when an acquisition source cannot produce a capability."""

    def __init__(self, source: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Source '{source}' is unavailable")
        self.source = source


class SourceTimedOut(TierFetchError):
    """Raised when an acquisition source exceeds its deadline."""

    def __init__(self, source: str, deadline_ms: int) -> None:
        super().__init__(f"Source '{source}' timed out after {deadline_ms} ms")
        self.source = source
        self.deadline_ms = deadline_ms


class AllSourcesExhausted(TierFetchError):
    """Every configured source failed; the loader falls back to the stub."""

    def __init__(self, attempted: int) -> None:
        super().__init__(f"All {attempted} configured source(s) exhausted")
        self.attempted = attempted


class FetchFailed(TierFetchError):
    """Raised to every caller awaiting a key whose underlying fetch failed."""

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Fetch failed for '{key}'")
        self.key = key


class ConfigurationError(TierFetchError, ValueError):
    """Raised when configuration inputs are invalid."""
