# core/cleanup.py
import inspect
import logging
from typing import Awaitable, Callable, List, Tuple, Union

logger = logging.getLogger(__name__)

Releaser = Callable[[], Union[None, Awaitable[None]]]


class CleanupHook:
    """
    Owns the release callbacks for live resources (polling tasks, peer
    connections, data channels, media streams, audio sinks).

    - release() runs every callback once, newest first, then forgets them.
    - A second release() is a no-op.
    - One failing callback is logged and does not stop the others.
    """

    def __init__(self, name: str = "resource") -> None:
        self._name = name
        self._releasers: List[Tuple[str, Releaser]] = []
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pending(self) -> int:
        return len(self._releasers)

    def register(self, label: str, releaser: Releaser) -> None:
        self._releasers.append((label, releaser))
        self._released = False

    async def release(self) -> None:
        releasers, self._releasers = self._releasers, []
        self._released = True
        for label, fn in reversed(releasers):
            try:
                result = fn()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("cleanup.error owner=%s label=%s", self._name, label)
        logger.debug("cleanup.done owner=%s released=%d", self._name, len(releasers))
