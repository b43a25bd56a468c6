"""Observer registry owned by a single fetch/cache manager.

Object observers are held by identity and function observers by equality.
Delivery is fan-out over a snapshot of the
current subscribers, so an observer may unsubscribe itself (or others) from
inside ``update`` without disturbing the ongoing notification round.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


@runtime_checkable
class Observer(Protocol):
    """Anything exposing ``update(data)``."""

    def update(self, data: Any) -> None:  # pragma: no cover - protocol
        ...


def _noop() -> None:
    return None


class ObserverRegistry:
    """Publish/subscribe list of object observers and function observers."""

    def __init__(self, name: str = "ObserverRegistry") -> None:
        self.name = name
        self._observers: Dict[int, Observer] = {}
        self._functions: List[Callable[[Any], None]] = []

    def subscribe(self, observer: Observer) -> Unsubscribe:
        """Add ``observer``; returns a callable that removes it again."""
        if observer is None:
            LOGGER.warning("(%s) Attempted to subscribe a null observer.", self.name)
            return _noop
        self._observers[id(observer)] = observer
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        self._observers.pop(id(observer), None)

    def subscribe_function(self, fn: Callable[[Any], None]) -> Unsubscribe:
        """Add a plain callable invoked as ``fn(data)``."""
        if fn is None:
            LOGGER.warning("(%s) Attempted to subscribe a null function observer.", self.name)
            return _noop
        if fn not in self._functions:
            self._functions.append(fn)
        return lambda: self.unsubscribe_function(fn)

    def unsubscribe_function(self, fn: Callable[[Any], None]) -> None:
        # Bound methods are re-created on access, so match by equality.
        if fn in self._functions:
            self._functions.remove(fn)

    def notify(self, data: Any) -> int:
        """Deliver ``data`` to every subscriber.

        A failing observer is logged and skipped; the rest still receive the
        value. Returns the number of successful deliveries.
        """
        delivered = 0
        for observer in list(self._observers.values()):
            try:
                observer.update(data)
            except Exception:
                LOGGER.exception("(%s) Observer %r failed during update", self.name, observer)
            else:
                delivered += 1
        for fn in list(self._functions):
            try:
                fn(data)
            except Exception:
                LOGGER.exception("(%s) Function observer %r failed", self.name, fn)
            else:
                delivered += 1
        return delivered

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    @property
    def function_observer_count(self) -> int:
        return len(self._functions)

    def __contains__(self, observer: object) -> bool:
        return id(observer) in self._observers or observer in self._functions

    def __len__(self) -> int:
        return len(self._observers) + len(self._functions)

    def clear(self) -> None:
        self._observers.clear()
        self._functions.clear()


__all__ = ["Observer", "ObserverRegistry", "Unsubscribe"]
