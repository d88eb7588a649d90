from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Union

from shared.channel import open_for_write
from shared.protocol.envelope import Envelope
from shared.protocol.errors import TransportError

logger = logging.getLogger(__name__)


class ChannelWriter:
    """Write side of the input FIFO, driven through an asyncio pipe transport."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    async def open(self, stop_event: Optional[asyncio.Event] = None) -> bool:
        """Wait for a reader to attach (blocking-open rendezvous). False if stopped first."""
        if self._writer is not None:
            return True
        logger.info("Waiting for a subscriber to open %s", self.path)
        pipe = await open_for_write(self.path, stop_event)
        if pipe is None:
            return False
        loop = asyncio.get_running_loop()
        # Write-only pipe; the reader only carries the connection-lost error to drain().
        reader = asyncio.StreamReader()
        try:
            transport, protocol = await loop.connect_write_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), pipe
            )
        except OSError as exc:
            pipe.close()
            raise TransportError(f"Failed to attach to {self.path}: {exc}") from exc
        self._writer = asyncio.StreamWriter(transport, protocol, reader, loop)
        logger.info("Subscriber attached to %s", self.path)
        return True

    async def send(self, envelope: Envelope) -> int:
        frame = envelope.to_frame()
        await self.send_frame(frame)
        return len(frame)

    async def send_frame(self, frame: bytes) -> None:
        if self._writer is None:
            raise TransportError(f"{self.path} is not open for writing")
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError) as exc:
            raise TransportError(f"Subscriber went away from {self.path}: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"Failed to write to {self.path}: {exc}") from exc

    async def close(self, abort: bool = False) -> None:
        """Close the pipe; `abort` drops frames still buffered for a subscriber that stopped reading."""
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        try:
            if abort:
                writer.transport.abort()
            else:
                writer.close()
            # let the transport deliver connection_lost before the loop goes away
            await asyncio.sleep(0)
        except Exception as e:
            logger.debug("Error during writer cleanup: %s", e)
