"""Helpers for racing awaitables against a request's cancellation event.

A chat request owns one ``asyncio.Event``. The HTTP layer sets it when the
client disconnects; every in-flight provider read, tool call and research
search awaited through ``race_cancel`` is then cancelled and the caller sees
``OperationAborted`` instead of a result.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from neochat.domain.errors import OperationAborted

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def race_cancel(awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises:
        OperationAborted: the event was set before the awaitable finished.
    """
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if cancel_event.is_set():
        task.cancel()
        await _reap(task)
        raise OperationAborted()

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    task.cancel()
    await _reap(task)
    raise OperationAborted()


async def _reap(task: asyncio.Future) -> None:
    """Wait for a cancelled child so its cleanup runs before we move on."""
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:  # noqa: BLE001 - outcome of an abandoned child
        logger.debug("Aborted task finished with %s: %s", type(e).__name__, e)
