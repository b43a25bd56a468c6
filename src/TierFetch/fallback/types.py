"""Core types for capability acquisition.

This module defines the dataclasses used by the fallback chain:

- AcquisitionSource: A named strategy producing a capability
- RaceOutcome: Completed / Expired result of the timeout race
- AcquisitionOutcome: Succeeded / Failed / TimedOut result of one attempt
- LoaderState: Lifecycle of a capability loader
- LoaderResult: Write-once settlement of a loader

All types are frozen dataclasses for immutability.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Literal, Optional, Tuple, TypeVar, Union

from TierFetch.cache.capability import Capability
from TierFetch.errors import SourceTimedOut

T = TypeVar("T")

#: Identifier reported as ``source_used`` when the inert fallback was used.
STUB_SOURCE_ID = "stub"

# ============================================================================
# Error kinds
# ============================================================================

ErrorKind = Literal[
    "unavailable",  # Attempt raised or produced something that is not a Capability
    "exhausted",  # No sources were configured at all
]

# ============================================================================
# AcquisitionSource
# ============================================================================


@dataclass(frozen=True)
class AcquisitionSource:
    """One configured acquisition strategy.

    Attributes:
        id: Source identifier (e.g., "cdn", "local", "bundled")
        attempt: Zero-argument callable returning an awaitable that resolves
            to a Capability

    Example:
        ```python
        source = AcquisitionSource("local", lambda: build_local_capability())
        ```
    """

    id: str = field()
    attempt: Callable[[], Awaitable[Capability]] = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("source id must be non-empty")
        if not callable(self.attempt):
            raise TypeError(f"attempt for source '{self.id}' must be callable")


# ============================================================================
# RaceOutcome
# ============================================================================


@dataclass(frozen=True)
class Completed(Generic[T]):
    """The attempt settled before the deadline, with a value or an error."""

    value: Optional[T] = None
    error: Optional[BaseException] = None
    elapsed_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Expired:
    """The deadline elapsed first; the attempt (if started) was abandoned."""

    deadline_ms: int
    started: bool = True


RaceOutcome = Union[Completed[T], Expired]

# ============================================================================
# AcquisitionOutcome
# ============================================================================


@dataclass(frozen=True)
class Succeeded:
    """A source produced a capability."""

    source: str
    capability: Capability = field(repr=False)
    elapsed_ms: int = 0

    @property
    def is_success(self) -> bool:
        return True

    @property
    def outcome(self) -> str:
        return "success"


@dataclass(frozen=True)
class Failed:
    """A source raised, or produced something unusable."""

    source: str
    reason: ErrorKind
    error: Optional[BaseException] = None
    elapsed_ms: int = 0

    @property
    def is_success(self) -> bool:
        return False

    @property
    def outcome(self) -> str:
        return "failed"


@dataclass(frozen=True)
class TimedOut:
    """A source did not settle within its deadline."""

    source: str
    elapsed_ms: int = 0
    deadline_ms: int = 0

    @property
    def error(self) -> SourceTimedOut:
        return SourceTimedOut(self.source, self.deadline_ms)

    @property
    def is_success(self) -> bool:
        return False

    @property
    def outcome(self) -> str:
        return "timeout"


AcquisitionOutcome = Union[Succeeded, Failed, TimedOut]

# ============================================================================
# Loader
# ============================================================================


class LoaderState(str, Enum):
    """Lifecycle of a capability loader. ``SETTLED_*`` states are terminal."""

    UNSTARTED = "unstarted"
    RESOLVING = "resolving"
    SETTLED_SUCCESS = "settled_success"
    SETTLED_STUB = "settled_stub"

    @property
    def is_settled(self) -> bool:
        return self in (LoaderState.SETTLED_SUCCESS, LoaderState.SETTLED_STUB)


@dataclass(frozen=True)
class LoaderResult:
    """Memoized settlement of a loader.

    Attributes:
        success: True when a configured source produced the capability
        source_used: Id of that source, or ``"stub"``
        capability: The capability callers use (real or inert)
        attempts: Outcomes of the single resolution pass, in order
    """

    success: bool
    source_used: str
    capability: Capability = field(repr=False)
    attempts: Tuple[AcquisitionOutcome, ...] = field(default=(), repr=False)

    def describe(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "source_used": self.source_used,
            "attempts": [(o.source, o.outcome, o.elapsed_ms) for o in self.attempts],
        }


__all__ = [
    "AcquisitionOutcome",
    "AcquisitionSource",
    "Completed",
    "ErrorKind",
    "Expired",
    "Failed",
    "LoaderResult",
    "LoaderState",
    "RaceOutcome",
    "STUB_SOURCE_ID",
    "Succeeded",
    "TimedOut",
]
