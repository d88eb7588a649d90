from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional, Union

from shared.channel import open_for_write
from shared.protocol.errors import TransportError

logger = logging.getLogger(__name__)


class FileSink:
    """Append-only output sink: a plain file, or a FIFO feeding a downstream reader."""

    def __init__(self, path: Union[str, os.PathLike], fifo: bool = False) -> None:
        self.path = Path(path)
        self.fifo = fifo
        self.records = 0
        self._fp: Optional[BinaryIO] = None

    async def open(self, stop_event: Optional[asyncio.Event] = None) -> bool:
        """Open for appending. A FIFO open waits for a downstream reader; False if stopped first."""
        if self._fp is not None:
            return True
        if self.fifo:
            self._fp = await open_for_write(self.path, stop_event)
            if self._fp is None:
                return False
        else:
            try:
                self._fp = open(self.path, "ab")
            except OSError as exc:
                raise TransportError(f"Failed to open output {self.path}: {exc}") from exc
        logger.debug("Output sink %s open", self.path)
        return True

    def write(self, record: bytes) -> None:
        if self._fp is None:
            raise TransportError(f"Output sink {self.path} is not open")
        try:
            self._fp.write(record)
            self._fp.flush()
        except OSError as exc:
            raise TransportError(f"Failed to write to output {self.path}: {exc}") from exc
        self.records += 1

    def close(self) -> None:
        if self._fp is not None:
            try:
                self._fp.close()
            except OSError as exc:
                logger.debug("Error closing output %s: %s", self.path, exc)
            finally:
                self._fp = None
