from __future__ import annotations

import asyncio
import logging
from typing import Optional

from shared.channel import ensure_channel, ensure_output
from shared.settings import Settings
from subscriber.core import Subscriber, SubscriberStats
from subscriber.storage import FileSink

logger = logging.getLogger(__name__)


async def run_subscriber(settings: Settings, stop_event: Optional[asyncio.Event] = None) -> SubscriberStats:
    """Provision channels, open the output sink and run one subscription."""
    ensure_channel(settings.input_path)
    ensure_output(settings.output_path, fifo=settings.output_fifo)
    stop_event = stop_event or asyncio.Event()

    sink = FileSink(settings.output_path, fifo=settings.output_fifo)
    if not await sink.open(stop_event):
        logger.info("Stopped before output %s had a reader", settings.output_path)
        return SubscriberStats()
    try:
        subscriber = Subscriber(settings, stop_event)
        return await subscriber.run(sink)
    finally:
        sink.close()
