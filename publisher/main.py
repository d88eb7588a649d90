from __future__ import annotations

import asyncio
import sys
from typing import Optional

from publisher.core import Publisher, PublisherStats
from publisher.sources import ContentSource, StreamSource, SyntheticSource
from shared.channel import ensure_channel
from shared.settings import Settings


def build_source(settings: Settings) -> ContentSource:
    if settings.generate_synthetic:
        return SyntheticSource(settings.min_length, settings.max_length)
    return StreamSource(sys.stdin)


async def run_publisher(
    settings: Settings,
    source: Optional[ContentSource] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> PublisherStats:
    """Provision the input channel and publish until the source or message limit runs out."""
    ensure_channel(settings.input_path)
    publisher = Publisher(settings, stop_event)
    return await publisher.run(source or build_source(settings))
