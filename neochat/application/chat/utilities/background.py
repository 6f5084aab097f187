"""Fire-and-forget task runner for post-response work.

Auto-titling and auto-memory run after (or alongside) the streamed reply and
must never affect it. Tasks are held by strong reference until they finish,
their exceptions are logged and swallowed, and they are not tied to the
request's cancellation event.
"""

import asyncio
import logging
from typing import Awaitable, Set

from neochat.core.log_sanitizer import sanitize_for_logging

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Owns detached asyncio tasks."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str = "background") -> asyncio.Task:
        task = asyncio.ensure_future(self._guard(coro, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guard(coro: Awaitable, name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.debug("Background task %s cancelled", name)
            raise
        except Exception as e:  # noqa: BLE001 - background failures never reach the client
            logger.warning("Background task %s failed: %s", name, sanitize_for_logging(e))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every task spawned so far (and any they spawn) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
