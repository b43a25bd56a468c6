"""Diagnostic events for source attempts.

One :class:`AttemptEvent` is emitted per source attempt so hosting
applications can observe fallback behaviour. Emission is advisory: the
orchestrator logs and ignores sink failures.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from .types import AcquisitionOutcome, Failed, TimedOut

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptEvent:
    """Record of a single source attempt."""

    source: str
    outcome: str
    elapsed_ms: int
    position: int
    reason: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    @classmethod
    def from_outcome(cls, outcome: AcquisitionOutcome, position: int) -> "AttemptEvent":
        reason = None
        error = None
        if isinstance(outcome, Failed):
            reason = outcome.reason
            error = repr(outcome.error) if outcome.error is not None else None
        elif isinstance(outcome, TimedOut):
            reason = "timeout"
            error = str(outcome.error)
        return cls(
            source=outcome.source,
            outcome=outcome.outcome,
            elapsed_ms=outcome.elapsed_ms,
            position=position,
            reason=reason,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["event_type"] = "source_attempt"
        return payload


class TelemetrySink(Protocol):
    """Structural type for attempt sinks."""

    def emit(self, event: AttemptEvent) -> None:  # pragma: no cover - protocol
        ...


class LoggingSink:
    """Logs every attempt on the ``TierFetch.fallback.telemetry`` logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER

    def emit(self, event: AttemptEvent) -> None:
        level = logging.INFO if event.outcome == "success" else logging.WARNING
        self.logger.log(
            level,
            "source=%s outcome=%s elapsed_ms=%d",
            event.source,
            event.outcome,
            event.elapsed_ms,
            extra={"source": event.source, "outcome": event.outcome},
        )


class JsonlSink:
    """Appends one JSON object per attempt to ``path``."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event: AttemptEvent) -> None:
        line = json.dumps(event.to_dict(), sort_keys=True)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class InMemorySink:
    """Collects events in a list; used by the CLI and tests."""

    def __init__(self) -> None:
        self.events: List[AttemptEvent] = []

    def emit(self, event: AttemptEvent) -> None:
        self.events.append(event)


class MultiSink:
    """Fans one event out to several sinks."""

    def __init__(self, sinks: Sequence[TelemetrySink]) -> None:
        self.sinks = list(sinks)

    def emit(self, event: AttemptEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                LOGGER.warning(f"Telemetry sink {sink!r} failed: {e}")


__all__ = [
    "AttemptEvent",
    "InMemorySink",
    "JsonlSink",
    "LoggingSink",
    "MultiSink",
    "TelemetrySink",
]
