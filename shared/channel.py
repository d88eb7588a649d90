from __future__ import annotations

import asyncio
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Literal, Optional, Union

from shared.protocol.constants import CHANNEL_MODE
from shared.protocol.errors import ProvisioningError, TransportError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class ChannelHandle:
    path: Path
    kind: Literal["fifo", "file"]
    created: bool


def ensure_channel(path: PathLike) -> ChannelHandle:
    """Create the named FIFO at `path` unless one already exists there."""
    path = Path(path)
    try:
        os.mkfifo(path, CHANNEL_MODE)
    except FileExistsError:
        _require_kind(path, stat.S_ISFIFO, "FIFO")
        logger.debug("Channel %s already exists", path)
        return ChannelHandle(path=path, kind="fifo", created=False)
    except OSError as exc:
        raise ProvisioningError(f"Failed to create channel {path}: {exc}") from exc
    logger.info("Created channel %s", path)
    return ChannelHandle(path=path, kind="fifo", created=True)


def ensure_output(path: PathLike, fifo: bool = False) -> ChannelHandle:
    """Create the output sink: a second FIFO, or a plain file that is never truncated."""
    if fifo:
        return ensure_channel(path)
    path = Path(path)
    if path.exists():
        _require_kind(path, stat.S_ISREG, "regular file")
        return ChannelHandle(path=path, kind="file", created=False)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(mode=0o600, exist_ok=True)
    except OSError as exc:
        raise ProvisioningError(f"Failed to create output file {path}: {exc}") from exc
    logger.info("Created output file %s", path)
    return ChannelHandle(path=path, kind="file", created=True)


async def open_for_write(path: PathLike, stop_event: Optional[asyncio.Event] = None) -> Optional[BinaryIO]:
    """
    Open a FIFO for writing with blocking semantics (waits until a reader attaches)
    without blocking the event loop. Returns None if `stop_event` fires first.
    """
    path = Path(path)
    loop = asyncio.get_running_loop()
    opening = loop.run_in_executor(None, _open_blocking, path)
    if stop_event is None:
        return await opening

    stop_wait = asyncio.ensure_future(stop_event.wait())
    try:
        done, _ = await asyncio.wait({opening, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_wait.cancel()
    if opening in done:
        return opening.result()

    # The worker thread may not have reached open() yet, so the read end stays
    # attached until it returns.
    release_fd = _release_rendezvous(path)
    try:
        pipe = await opening
    except TransportError as exc:
        logger.debug("Pending open of %s failed after stop: %s", path, exc)
        return None
    finally:
        if release_fd is not None:
            os.close(release_fd)
    pipe.close()
    return None


def _open_blocking(path: Path) -> BinaryIO:
    try:
        return open(path, "wb", buffering=0)
    except OSError as exc:
        raise TransportError(f"Failed to open {path} for writing: {exc}") from exc


def _release_rendezvous(path: Path) -> Optional[int]:
    try:
        return os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    except OSError as exc:
        logger.warning("Could not release pending open of %s: %s", path, exc)
        return None


def _require_kind(path: Path, check, expected: str) -> None:
    try:
        mode = os.stat(path).st_mode
    except OSError as exc:
        raise ProvisioningError(f"Cannot inspect {path}: {exc}") from exc
    if not check(mode):
        raise ProvisioningError(f"{path} exists but is not a {expected}")


__all__ = ["ChannelHandle", "ensure_channel", "ensure_output", "open_for_write"]
