# === NAVMAP v1 ===
# {
#   "module": "TierFetch.fallback.__init__",
#   "purpose": "Tiered capability acquisition.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Tiered Capability Acquisition

Acquires a capability from an ordered chain of sources with:
- Deterministic source ordering
- A deadline per source attempt (abandon, never cancel)
- Fallback to the next source on failure or timeout
- Single memoized settlement per loader, shared by concurrent callers
- Inert stub capability when every source fails
- One telemetry event per attempt

Public API:
  CapabilityLoader - State machine producing the LoaderResult
  SourceChainResolver - Ordered chain over the race primitive
  race - Timeout race primitive
  AcquisitionSource - Configured strategy
  LoaderResult - Write-once settlement
"""

from .acquisition import (
    CapabilityLoader,
    acquire_capability,
    configure_default_loader,
    get_default_loader,
    reset_default_loader_for_tests,
    wait_for_capability,
)
from .orchestrator import SourceChainResolver, resolve_sources
from .race import race
from .types import (
    STUB_SOURCE_ID,
    AcquisitionOutcome,
    AcquisitionSource,
    Completed,
    Expired,
    Failed,
    LoaderResult,
    LoaderState,
    Succeeded,
    TimedOut,
)

__all__ = [
    "AcquisitionOutcome",
    "AcquisitionSource",
    "CapabilityLoader",
    "Completed",
    "Expired",
    "Failed",
    "LoaderResult",
    "LoaderState",
    "STUB_SOURCE_ID",
    "SourceChainResolver",
    "Succeeded",
    "TimedOut",
    "acquire_capability",
    "configure_default_loader",
    "get_default_loader",
    "race",
    "reset_default_loader_for_tests",
    "resolve_sources",
    "wait_for_capability",
]
