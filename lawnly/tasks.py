import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class FireAndForget:
    """Runs best-effort side effects without blocking the caller.

    ``spawn`` schedules the coroutine on the running loop and returns at
    once. A failing side effect is logged and never reaches the caller,
    so it cannot roll back or fail the state change that triggered it.
    Strong references are held until each task finishes.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        task = asyncio.create_task(self._guard(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Side effect '%s' failed (non-blocking)", label)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
