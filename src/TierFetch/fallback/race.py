"""Timeout race primitive.

``race`` runs one attempt against a deadline and reports whichever settles
first. A losing attempt is abandoned rather than cancelled: it keeps running
on the loop, and a done-callback retrieves its eventual exception so the loop
never reports it as unobserved. A capability it produces after losing is
closed, since no caller will ever receive it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Set, TypeVar, Union

from TierFetch.cache.capability import Capability

from .types import Completed, Expired

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def _invoke(attempt: Callable[[], Union[Awaitable[T], T]]) -> T:
    result = attempt()
    if inspect.isawaitable(result):
        return await result
    return result


_CLOSING: Set["asyncio.Task[None]"] = set()


async def _close_late_capability(capability: Capability) -> None:
    try:
        await capability.aclose()
    except Exception:
        LOGGER.warning("Failed to close capability from abandoned attempt", exc_info=True)


def _discard_result(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug("Abandoned attempt settled late with %r", exc)
        return
    value = task.result()
    if isinstance(value, Capability):
        LOGGER.debug("Closing capability produced after its deadline: %s", value)
        closing = task.get_loop().create_task(_close_late_capability(value))
        _CLOSING.add(closing)
        closing.add_done_callback(_CLOSING.discard)


async def race(
    attempt: Callable[[], Union[Awaitable[T], T]],
    deadline_ms: int,
) -> Union[Completed[T], Expired]:
    """Run ``attempt`` against ``deadline_ms``.

    Args:
        attempt: Zero-argument callable returning an awaitable (or a value)
        deadline_ms: Deadline in milliseconds; ``<= 0`` expires immediately
            without starting the attempt

    Returns:
        ``Completed(value=...)`` / ``Completed(error=...)`` if the attempt
        settled first, ``Expired`` otherwise.
    """
    if deadline_ms <= 0:
        return Expired(deadline_ms=deadline_ms, started=False)

    start = time.perf_counter()
    task = asyncio.ensure_future(_invoke(attempt))

    try:
        done, _pending = await asyncio.wait({task}, timeout=deadline_ms / 1000.0)
    except asyncio.CancelledError:
        task.add_done_callback(_discard_result)
        raise
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    if task not in done:
        task.add_done_callback(_discard_result)
        return Expired(deadline_ms=deadline_ms)

    if task.cancelled():
        return Completed(error=asyncio.CancelledError(), elapsed_ms=elapsed_ms)
    exc = task.exception()
    if exc is not None:
        return Completed(error=exc, elapsed_ms=elapsed_ms)
    return Completed(value=task.result(), elapsed_ms=elapsed_ms)


__all__ = ["race"]
