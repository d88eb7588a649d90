from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from publisher.sources import ContentSource
from shared.protocol.envelope import Envelope
from shared.settings import Settings

from .writer import ChannelWriter

logger = logging.getLogger(__name__)

_STOPPED = object()


@dataclass
class PublisherStats:
    sent: int = 0
    bytes_sent: int = 0
    last_checksum: Optional[str] = None


class Publisher:
    """Wraps content from a source in envelopes and writes one frame per message."""

    def __init__(
        self,
        settings: Settings,
        stop_event: Optional[asyncio.Event] = None,
        writer: Optional[ChannelWriter] = None,
    ) -> None:
        self.settings = settings
        self.stop_event = stop_event or asyncio.Event()
        self.writer = writer or ChannelWriter(settings.input_path)
        self.stats = PublisherStats()

    def stop(self) -> None:
        self.stop_event.set()

    def _limit_reached(self) -> bool:
        limit = self.settings.message_count
        return limit > 0 and self.stats.sent >= limit

    async def _unless_stopped(self, awaitable: Awaitable[Any]) -> Any:
        """Await `awaitable`, abandoning it and returning _STOPPED if the stop event fires first."""
        task = asyncio.ensure_future(awaitable)
        stop_wait = asyncio.ensure_future(self.stop_event.wait())
        try:
            done, _ = await asyncio.wait({task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if task in done:
            return task.result()
        return _STOPPED

    async def run(self, source: ContentSource) -> PublisherStats:
        if not await self.writer.open(self.stop_event):
            logger.info("Stopped before a subscriber attached")
            return self.stats
        interrupted = False
        try:
            while not self.stop_event.is_set() and not self._limit_reached():
                content = await self._unless_stopped(source.next_content())
                if content is _STOPPED:
                    break
                if content is None:
                    logger.info("Content source exhausted")
                    break
                envelope = Envelope.create(content, self.settings.checksum_policy)
                written = await self._unless_stopped(self.writer.send(envelope))
                if written is _STOPPED:
                    interrupted = True
                    logger.info("Stopped while waiting for the subscriber to drain")
                    break
                self.stats.bytes_sent += written
                self.stats.sent += 1
                self.stats.last_checksum = envelope.digest
                logger.debug("Sent message %s (%s chars)", self.stats.sent, len(content))
                if self.stats.sent % self.settings.report_every == 0:
                    logger.info("Sent %s messages, last checksum %s", self.stats.sent, envelope.digest)
        finally:
            await self.writer.close(abort=interrupted)
        logger.info("Publisher finished after %s messages (%s bytes)", self.stats.sent, self.stats.bytes_sent)
        return self.stats
