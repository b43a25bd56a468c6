"""Capability contract shared by the real fetch manager and the inert stub.

Every acquisition source ultimately produces a :class:`Capability`. Callers
hold the abstract type and never branch on which variant they received: the
stub satisfies the same contract by answering every ``fetch`` with
:data:`EMPTY_RESULT` instead of raising.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from TierFetch.cache.observers import Observer, ObserverRegistry, Unsubscribe

LOGGER = logging.getLogger(__name__)

#: Sentinel returned by :class:`StubCapability.fetch`. Immutable and empty.
EMPTY_RESULT: Mapping[str, Any] = MappingProxyType({})


class Capability(ABC):
    """Fetch/subscribe/invalidate surface consumed by the hosting application."""

    def __init__(self, observers: Optional[ObserverRegistry] = None) -> None:
        self.observers = observers or ObserverRegistry(type(self).__name__)

    @abstractmethod
    async def fetch(self, key: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Return data for ``key``."""

    @abstractmethod
    def invalidate(self, key: str, params: Optional[Mapping[str, Any]] = None) -> None:
        """Drop any cached value for ``key``."""

    async def aclose(self) -> None:
        """Release resources held by the capability. Safe to call more than once."""
        return None

    def subscribe(self, observer: Observer) -> Unsubscribe:
        return self.observers.subscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        self.observers.unsubscribe(observer)

    def subscribe_function(self, fn: Callable[[Any], None]) -> Unsubscribe:
        return self.observers.subscribe_function(fn)

    def unsubscribe_function(self, fn: Callable[[Any], None]) -> None:
        self.observers.unsubscribe_function(fn)

    @property
    def is_stub(self) -> bool:
        return False


class StubCapability(Capability):
    """Inert capability used when every acquisition source failed."""

    async def fetch(self, key: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        LOGGER.debug("Stub capability answering fetch for %r with empty result", key)
        return EMPTY_RESULT

    def invalidate(self, key: str, params: Optional[Mapping[str, Any]] = None) -> None:
        return None

    @property
    def is_stub(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"{type(self).__name__}: inert"


__all__ = ["Capability", "EMPTY_RESULT", "StubCapability"]
