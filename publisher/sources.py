from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import threading
from typing import Optional, Protocol, TextIO

from shared.utils.common import random_alphanumeric

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    async def next_content(self) -> Optional[str]:
        """Return the next content item, or None once the source is exhausted."""
        ...


class SyntheticSource:
    """Random alphanumeric strings with length in [min_length, max_length)."""

    def __init__(self, min_length: int = 5000, max_length: int = 10000, rng: Optional[random.Random] = None) -> None:
        if not (0 <= min_length < max_length):
            raise ValueError("min_length must be >= 0 and below max_length")
        self.min_length = min_length
        self.max_length = max_length
        self.rng = rng or random.Random()

    async def next_content(self) -> Optional[str]:
        length = self.rng.randrange(self.min_length, self.max_length)
        return random_alphanumeric(length, self.rng)


class StreamSource:
    """
    Line-by-line content from a text stream (stdin by default).
    A daemon thread pumps lines into a queue so a pending read never holds up shutdown.
    """

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._queue: Optional[asyncio.Queue[Optional[str]]] = None
        self._exhausted = False

    async def next_content(self) -> Optional[str]:
        if self._exhausted:
            return None
        if self._queue is None:
            self._start()
        assert self._queue is not None
        line = await self._queue.get()
        if line is None:
            self._exhausted = True
        return line

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        thread = threading.Thread(target=self._pump, args=(loop, self._queue), name="stream-source", daemon=True)
        thread.start()

    def _pump(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        try:
            for line in self.stream:
                if not _deliver(loop, queue, line.rstrip("\r\n")):
                    return
        except (OSError, ValueError) as exc:
            logger.error("Reading input stream failed: %s", exc)
        _deliver(loop, queue, None)


def _deliver(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, item: Optional[str]) -> bool:
    if loop.is_closed():
        return False
    # The loop may close between the check and the call once the publisher has stopped.
    with contextlib.suppress(RuntimeError):
        loop.call_soon_threadsafe(queue.put_nowait, item)
        return True
    return False


__all__ = ["ContentSource", "SyntheticSource", "StreamSource"]
