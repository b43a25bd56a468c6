# === NAVMAP v1 ===
# {
#   "module": "TierFetch.fallback.orchestrator",
#   "purpose": "Ordered source chain resolution with per-source deadlines.",
#   "sections": [
#     {
#       "id": "sourcechainresolver",
#       "name": "SourceChainResolver",
#       "anchor": "class-sourcechainresolver",
#       "kind": "class"
#     },
#     {
#       "id": "resolve-sources",
#       "name": "resolve_sources",
#       "anchor": "function-resolve-sources",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Source Chain Resolver

Tries acquisition sources strictly in configured order with:
- Each attempt raced against the per-source deadline
- Short-circuit on the first source that produces a Capability
- Exactly one attempt per source per pass (no retries)
- One telemetry event per attempt

Design:
- Pure orchestration (no state beyond the outcomes of the last pass)
- Exhaustion is a recoverable signal: the last outcome is returned and the
  caller decides what to fall back to
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from TierFetch.cache.capability import Capability
from TierFetch.errors import AllSourcesExhausted

from .race import race
from .telemetry import AttemptEvent, TelemetrySink
from .types import (
    AcquisitionOutcome,
    AcquisitionSource,
    Completed,
    Failed,
    Succeeded,
    TimedOut,
)

LOGGER = logging.getLogger(__name__)


class SourceChainResolver:
    """
    Resolves a capability from an ordered list of sources.

    Attributes:
        sources: Sources in fallback priority order
        per_source_timeout_ms: Deadline applied to each attempt
        telemetry: Optional sink receiving one AttemptEvent per attempt
        attempts: Outcomes of the most recent pass, in attempt order
        logger: Logger instance
    """

    def __init__(
        self,
        sources: Sequence[AcquisitionSource],
        per_source_timeout_ms: int,
        telemetry: Optional[TelemetrySink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.sources = tuple(sources)
        self.per_source_timeout_ms = per_source_timeout_ms
        self.telemetry = telemetry
        self.logger = logger or LOGGER
        self.attempts: List[AcquisitionOutcome] = []

        ids = [source.id for source in self.sources]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate source ids: {ids}")

    async def resolve(self) -> AcquisitionOutcome:
        """Run one pass over the sources.

        Returns:
            ``Succeeded`` for the first source that produced a capability,
            otherwise the outcome of the last source. With no sources at all,
            ``Failed(source="", reason="exhausted")``.
        """
        self.attempts = []

        self.logger.debug(
            f"Starting source chain: {len(self.sources)} source(s), "
            f"deadline={self.per_source_timeout_ms}ms per source"
        )

        if not self.sources:
            self.logger.warning("No acquisition sources configured")
            return Failed(source="", reason="exhausted", error=AllSourcesExhausted(0))

        for position, source in enumerate(self.sources):
            outcome = await self._attempt(source)
            self.attempts.append(outcome)
            self._emit_telemetry(outcome, position)

            if isinstance(outcome, Succeeded):
                self.logger.info(
                    f"Source '{source.id}' succeeded (elapsed={outcome.elapsed_ms}ms)"
                )
                return outcome

            self.logger.debug(f"Source '{source.id}' {outcome.outcome}, trying next source")

        self.logger.warning(f"All sources exhausted (attempts={len(self.attempts)})")
        return self.attempts[-1]

    async def _attempt(self, source: AcquisitionSource) -> AcquisitionOutcome:
        result = await race(source.attempt, self.per_source_timeout_ms)

        if not isinstance(result, Completed):
            return TimedOut(
                source=source.id,
                elapsed_ms=max(self.per_source_timeout_ms, 0),
                deadline_ms=self.per_source_timeout_ms,
            )

        if result.error is not None:
            self.logger.debug(f"Source '{source.id}' raised: {result.error!r}")
            return Failed(
                source=source.id,
                reason="unavailable",
                error=result.error,
                elapsed_ms=result.elapsed_ms,
            )

        capability = result.value
        if not isinstance(capability, Capability):
            error = TypeError(
                f"source '{source.id}' produced {type(capability).__name__}, not a Capability"
            )
            return Failed(
                source=source.id, reason="unavailable", error=error, elapsed_ms=result.elapsed_ms
            )

        return Succeeded(source=source.id, capability=capability, elapsed_ms=result.elapsed_ms)

    def _emit_telemetry(self, outcome: AcquisitionOutcome, position: int) -> None:
        if not self.telemetry:
            return

        try:
            self.telemetry.emit(AttemptEvent.from_outcome(outcome, position))
        except Exception as e:
            self.logger.warning(f"Telemetry emission failed: {e}")


async def resolve_sources(
    sources: Sequence[AcquisitionSource],
    per_source_timeout_ms: int,
    telemetry: Optional[TelemetrySink] = None,
) -> AcquisitionOutcome:
    """Convenience wrapper running one pass of :class:`SourceChainResolver`."""
    return await SourceChainResolver(sources, per_source_timeout_ms, telemetry).resolve()


__all__ = ["SourceChainResolver", "resolve_sources"]
