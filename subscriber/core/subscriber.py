from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional, Protocol

from shared.protocol.envelope import Envelope, IntegrityStatus
from shared.protocol.errors import BusError, FramingError
from shared.settings import CorruptFramePolicy, Settings

from .reader import ChannelReader

logger = logging.getLogger(__name__)


class ByteSink(Protocol):
    def write(self, record: bytes) -> None: ...


class SubscriberState(StrEnum):
    AWAITING_DATA = "awaiting_data"
    STREAMING = "streaming"
    TERMINATED = "terminated"
    ERROR = "error"


@dataclass
class SubscriberStats:
    lines: int = 0
    forwarded: int = 0
    rejected: int = 0
    skipped: int = 0
    corrupt: int = 0
    oversized: int = 0


class Subscriber:
    """Reads frames from the input channel, verifies them and forwards valid envelopes to a sink."""

    def __init__(
        self,
        settings: Settings,
        stop_event: Optional[asyncio.Event] = None,
        reader: Optional[ChannelReader] = None,
    ) -> None:
        self.settings = settings
        self.stop_event = stop_event or asyncio.Event()
        self.reader = reader or ChannelReader(
            settings.input_path,
            poll_interval=settings.poll_interval,
            max_poll_interval=settings.max_poll_interval,
            stop_event=self.stop_event,
            strict_frames=settings.corrupt_frames == CorruptFramePolicy.FATAL,
        )
        self.state = SubscriberState.AWAITING_DATA
        self.stats = SubscriberStats()

    def stop(self) -> None:
        self.stop_event.set()

    async def run(self, sink: ByteSink) -> SubscriberStats:
        self.reader.open()
        try:
            while not self.stop_event.is_set():
                self.state = SubscriberState.AWAITING_DATA
                logger.info("Waiting for messages on %s", self.reader.path)
                if not await self.reader.wait_ready():
                    break
                self.state = SubscriberState.STREAMING
                async for line in self.reader.lines():
                    self.handle_line(line, sink)
                self.stats.oversized = self.reader.discarded_frames
                if not self.settings.follow:
                    break
                logger.info("Publisher closed %s", self.reader.path)
            self.state = SubscriberState.TERMINATED
        except BusError:
            self.state = SubscriberState.ERROR
            raise
        finally:
            self.reader.close()
        logger.info(
            "Subscription ended: %s forwarded, %s rejected, %s corrupt, %s oversized, %s empty",
            self.stats.forwarded,
            self.stats.rejected,
            self.stats.corrupt,
            self.stats.oversized,
            self.stats.skipped,
        )
        return self.stats

    def handle_line(self, line: bytes, sink: ByteSink) -> Optional[Envelope]:
        """Deframe, validate and forward one line. Returns the forwarded envelope, if any."""
        self.stats.lines += 1
        if not line:
            self.stats.skipped += 1
            logger.debug("Received empty line. Skipping...")
            return None

        try:
            envelope = Envelope.from_frame(line)
        except FramingError as exc:
            if self.settings.corrupt_frames == CorruptFramePolicy.FATAL:
                raise
            self.stats.corrupt += 1
            logger.warning("Discarding corrupt frame: %s", exc)
            return None

        status = envelope.integrity()
        if status is not IntegrityStatus.VALID:
            self.stats.rejected += 1
            logger.warning("Rejected message (%s): checksum=%s", status, envelope.digest)
            return None

        sink.write(envelope.to_frame())
        self.stats.forwarded += 1
        logger.debug("Forwarded message %s (%s chars)", envelope.digest, len(envelope.content))
        return envelope
