from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from pathlib import Path
from typing import AsyncIterator, Deque, Optional, Union

from shared.protocol.constants import DEFAULT_POLL_INTERVAL, MAX_FRAME_SIZE, READ_CHUNK_SIZE
from shared.protocol.errors import TransportError
from shared.protocol.framing import FrameBuffer

logger = logging.getLogger(__name__)


class Backoff:
    """Exponential delay between unsuccessful read attempts, capped at `maximum`."""

    def __init__(self, initial: float, maximum: Optional[float] = None, factor: float = 2.0) -> None:
        self.initial = initial
        self.maximum = max(maximum if maximum is not None else initial, initial)
        self.factor = factor
        self._current = initial

    def next(self) -> float:
        delay = self._current
        self._current = min(self._current * self.factor, self.maximum)
        return delay

    def reset(self) -> None:
        self._current = self.initial


class ChannelReader:
    """
    Non-blocking reader for the input FIFO.

    `wait_ready` turns the possibly writer-less, possibly empty channel into a logical
    "wait for the first byte"; `lines` then yields delimiter-stripped lines until the
    writer closes the channel. Every unsuccessful read is followed by a wait: the loop
    watches the descriptor with the event loop, bounded by the current backoff delay.
    """

    def __init__(
        self,
        path: Union[str, os.PathLike],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_interval: Optional[float] = None,
        stop_event: Optional[asyncio.Event] = None,
        chunk_size: int = READ_CHUNK_SIZE,
        max_frame_size: int = MAX_FRAME_SIZE,
        strict_frames: bool = False,
    ) -> None:
        self.path = Path(path)
        self.backoff = Backoff(poll_interval, max_poll_interval)
        self.stop_event = stop_event or asyncio.Event()
        self.chunk_size = chunk_size
        self.attempts = 0
        self._buffer = FrameBuffer(max_frame_size, strict=strict_frames)
        self._lines: Deque[bytes] = deque()
        self._fd: Optional[int] = None
        self._woke_early = False

    def open(self) -> None:
        if self._fd is not None:
            return
        try:
            self._fd = os.open(self.path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            raise TransportError(f"Failed to open {self.path} for reading: {exc}") from exc
        logger.debug("Opened %s for non-blocking reads", self.path)

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    @property
    def discarded_frames(self) -> int:
        return self._buffer.discarded

    async def wait_ready(self) -> bool:
        """Return True once at least one byte has been read, False if stopped first."""
        while not self.stop_event.is_set():
            chunk = self._read_chunk()
            if chunk:
                self._accept(chunk)
                return True
            await self._wait()
        return False

    async def lines(self) -> AsyncIterator[bytes]:
        """Yield lines (may be empty) until end of stream or stop."""
        while True:
            while self._lines:
                yield self._lines.popleft()
            if self.stop_event.is_set():
                return
            chunk = self._read_chunk()
            if chunk is None:
                await self._wait()
                continue
            if not chunk:
                for tail in self._buffer.flush():
                    yield tail
                logger.debug("End of stream on %s", self.path)
                return
            self._accept(chunk)

    def _read_chunk(self) -> Optional[bytes]:
        """None if the read would block; b"" if no writer is attached (or it closed)."""
        if self._fd is None:
            raise TransportError(f"{self.path} is not open")
        self.attempts += 1
        try:
            return os.read(self._fd, self.chunk_size)
        except BlockingIOError:
            return None
        except OSError as exc:
            raise TransportError(f"Error reading from {self.path}: {exc}") from exc

    def _accept(self, chunk: bytes) -> None:
        self.backoff.reset()
        self._woke_early = False
        discarded = self._buffer.discarded
        self._lines.extend(self._buffer.feed(chunk))
        if self._buffer.discarded > discarded:
            logger.warning("Dropped oversized frame on %s", self.path)

    async def _wait(self) -> None:
        # A FIFO whose writer went away stays readable (EOF) forever, so an early
        # wakeup that produced nothing is followed by a plain sleep.
        watch = not self._woke_early
        self._woke_early = await self._pause(self.backoff.next(), watch)

    async def _pause(self, delay: float, watch: bool = True) -> bool:
        """Wait up to `delay` seconds; return True if woken early by readability."""
        loop = asyncio.get_running_loop()
        readable = loop.create_future()
        watching = False
        if watch and self._fd is not None:
            try:
                loop.add_reader(self._fd, _resolve, readable)
                watching = True
            except (NotImplementedError, OSError):
                logger.debug("Cannot watch %s; falling back to sleep", self.path)
        stop_wait = asyncio.ensure_future(self.stop_event.wait())
        try:
            done, _ = await asyncio.wait({readable, stop_wait}, timeout=delay, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
            readable.cancel()
            if watching:
                loop.remove_reader(self._fd)
        return readable in done


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


__all__ = ["Backoff", "ChannelReader"]
