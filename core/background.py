# core/background.py
import asyncio
import logging
from typing import Coroutine, Any, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """
    Keeps strong references to fire-and-forget jobs started by request handlers
    so they are not garbage collected mid-flight, and cancels them on shutdown.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        logger.debug("bg.spawn name=%s active=%d", name, len(self._tasks))
        return task

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "bg.error name=%s err=%s", task.get_name(), type(exc).__name__, exc_info=exc
            )

    async def shutdown(self) -> None:
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("bg.shutdown cancelled=%d", len(pending))


background = BackgroundTasks()
