# === NAVMAP v1 ===
# {
#   "module": "TierFetch.fallback.acquisition",
#   "purpose": "Memoized capability loader state machine and the process-wide default loader.",
#   "sections": [
#     {
#       "id": "capabilityloader",
#       "name": "CapabilityLoader",
#       "anchor": "class-capabilityloader",
#       "kind": "class"
#     },
#     {
#       "id": "default-loader",
#       "name": "get_default_loader",
#       "anchor": "function-get-default-loader",
#       "kind": "function"
#     },
#     {
#       "id": "wait-for-capability",
#       "name": "wait_for_capability",
#       "anchor": "function-wait-for-capability",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Capability Loader

Runs the source chain exactly once and memoizes the outcome:

    UNSTARTED → RESOLVING → SETTLED_SUCCESS | SETTLED_STUB

- The first ``acquire()`` starts a single resolution task
- Calls made while resolving await that same task
- Calls made after settlement return the cached :class:`LoaderResult`
- Exhaustion settles with :class:`StubCapability`; ``acquire()`` never
  raises because of a source

A process-wide default loader is kept behind a lock so hosting code can share
one settlement without passing the loader around.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional, Sequence

from TierFetch.cache.capability import Capability, StubCapability
from TierFetch.errors import AllSourcesExhausted

from .orchestrator import SourceChainResolver
from .telemetry import TelemetrySink
from .types import (
    STUB_SOURCE_ID,
    AcquisitionSource,
    LoaderResult,
    LoaderState,
    Succeeded,
)

LOGGER = logging.getLogger(__name__)


class CapabilityLoader:
    """Write-once acquisition of a capability from an ordered source chain.

    Attributes:
        resolver: Source chain resolver run at most once
        stub_factory: Builds the inert capability used on exhaustion
    """

    def __init__(
        self,
        sources: Sequence[AcquisitionSource],
        per_source_timeout_ms: int,
        *,
        telemetry: Optional[TelemetrySink] = None,
        stub_factory: Callable[[], Capability] = StubCapability,
    ) -> None:
        self.resolver = SourceChainResolver(sources, per_source_timeout_ms, telemetry)
        self.stub_factory = stub_factory
        self._state = LoaderState.UNSTARTED
        self._result: Optional[LoaderResult] = None
        self._pending: Optional["asyncio.Future[LoaderResult]"] = None

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def result(self) -> Optional[LoaderResult]:
        """The settled result, or ``None`` before settlement."""
        return self._result

    async def acquire(self) -> LoaderResult:
        """Return the loader's single settlement, resolving on first use."""
        if self._result is not None:
            return self._result

        if self._pending is not None and self._pending.done():
            # A pass that ended without a result was cancelled (its loop shut down).
            LOGGER.debug("Discarding interrupted resolution pass")
            self._pending = None

        if self._pending is None:
            self._state = LoaderState.RESOLVING
            self._pending = asyncio.ensure_future(self._resolve_once())

        # Shielded so one caller's cancellation never cancels the shared pass.
        return await asyncio.shield(self._pending)

    async def _resolve_once(self) -> LoaderResult:
        try:
            outcome = await self.resolver.resolve()
        except asyncio.CancelledError:
            self._state = LoaderState.UNSTARTED
            raise
        except Exception:
            LOGGER.exception("Source chain raised unexpectedly; using stub capability")
            outcome = None

        attempts = tuple(self.resolver.attempts)
        if isinstance(outcome, Succeeded):
            result = LoaderResult(
                success=True,
                source_used=outcome.source,
                capability=outcome.capability,
                attempts=attempts,
            )
            self._state = LoaderState.SETTLED_SUCCESS
        else:
            LOGGER.warning(f"{AllSourcesExhausted(len(attempts))}; falling back to inert capability")
            result = LoaderResult(
                success=False,
                source_used=STUB_SOURCE_ID,
                capability=self.stub_factory(),
                attempts=attempts,
            )
            self._state = LoaderState.SETTLED_STUB

        self._result = result
        return result

    def __str__(self) -> str:
        used = self._result.source_used if self._result else "-"
        return f"{type(self).__name__}: state={self._state.value}, source={used}"


# ============================================================================
# Process-wide default loader
# ============================================================================

_LOADER_LOCK = threading.RLock()
_DEFAULT_LOADER: Optional[CapabilityLoader] = None


def configure_default_loader(loader: CapabilityLoader) -> CapabilityLoader:
    """Install ``loader`` as the process-wide loader.

    Raises:
        RuntimeError: A different loader has already started resolving; its
            settlement is write-once for the process.
    """
    global _DEFAULT_LOADER
    with _LOADER_LOCK:
        current = _DEFAULT_LOADER
        if current is not None and current is not loader and current.state != LoaderState.UNSTARTED:
            raise RuntimeError("default loader already started; reset it before reconfiguring")
        _DEFAULT_LOADER = loader
        return loader


def get_default_loader() -> Optional[CapabilityLoader]:
    with _LOADER_LOCK:
        return _DEFAULT_LOADER


def reset_default_loader_for_tests() -> None:
    """Forget the process-wide loader (used in unit tests)."""
    global _DEFAULT_LOADER
    with _LOADER_LOCK:
        _DEFAULT_LOADER = None


async def acquire_capability() -> LoaderResult:
    """Acquire through the process-wide loader.

    Raises:
        RuntimeError: No default loader has been configured.
    """
    loader = get_default_loader()
    if loader is None:
        raise RuntimeError("no default loader configured; call configure_default_loader()")
    return await loader.acquire()


async def wait_for_capability(loader: Optional[CapabilityLoader] = None) -> Capability:
    """Wait for acquisition to finish and return the capability to use.

    Hosting code that must not start before loading completes calls this.
    Without a loader the wait is skipped with a warning and the inert
    capability is returned, so startup still proceeds.
    """
    loader = loader or get_default_loader()
    if loader is None:
        LOGGER.warning("No capability loader configured, proceeding without wait")
        return StubCapability()
    result = await loader.acquire()
    LOGGER.info(f"Capability loading complete (source={result.source_used})")
    return result.capability


__all__ = [
    "CapabilityLoader",
    "acquire_capability",
    "configure_default_loader",
    "get_default_loader",
    "reset_default_loader_for_tests",
    "wait_for_capability",
]
