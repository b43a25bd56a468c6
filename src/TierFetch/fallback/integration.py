"""Wiring configuration into a ready-to-use capability loader.

Responsibilities:
  - Build attempt telemetry sinks from the telemetry settings
  - Build the ordered source chain from the configured sources
  - Create (and optionally install as process default) the loader
"""

from __future__ import annotations

import logging
from typing import List, Optional

from TierFetch.config.models import TierFetchConfig

from .acquisition import CapabilityLoader, configure_default_loader
from .sources import ClientFactory, build_sources
from .telemetry import JsonlSink, LoggingSink, MultiSink, TelemetrySink

logger = logging.getLogger(__name__)


def build_telemetry(
    config: TierFetchConfig,
    extra: Optional[List[TelemetrySink]] = None,
) -> Optional[TelemetrySink]:
    """Return a sink for the configured telemetry, or ``None`` when disabled."""
    sinks: List[TelemetrySink] = list(extra or [])
    if config.telemetry.log_attempts:
        sinks.append(LoggingSink())
    if config.telemetry.jsonl_path:
        sinks.append(JsonlSink(config.telemetry.jsonl_path))
    if not sinks:
        return None
    if len(sinks) == 1:
        return sinks[0]
    return MultiSink(sinks)


def build_loader(
    config: TierFetchConfig,
    *,
    client_factory: Optional[ClientFactory] = None,
    telemetry: Optional[TelemetrySink] = None,
    install_as_default: bool = False,
) -> CapabilityLoader:
    """Create a loader for ``config``.

    Args:
        config: Validated configuration
        client_factory: Optional factory for probe-source HTTP clients
        telemetry: Extra sink receiving attempt events
        install_as_default: Also install the loader process-wide

    Returns:
        An unstarted CapabilityLoader
    """
    sink = build_telemetry(config, [telemetry] if telemetry else None)
    loader = CapabilityLoader(
        build_sources(config, client_factory),
        config.per_source_timeout_ms,
        telemetry=sink,
    )
    logger.debug(
        f"Built loader with sources={config.source_ids()} "
        f"deadline={config.per_source_timeout_ms}ms"
    )
    if install_as_default:
        configure_default_loader(loader)
    return loader


__all__ = ["build_loader", "build_telemetry"]
