from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .constants import ENCODING, FRAME_DELIMITER, MAX_FRAME_SIZE
from .errors import ErrorCode, FramingError


def encode_msg(msg: Dict[str, Any]) -> bytes:
    """Encode message dict into bytes (JSON + delimiter)."""
    try:
        json_str = json.dumps(msg, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise FramingError(f"Encode failed: {exc}") from exc

    data = json_str.encode(ENCODING)
    if len(data) > MAX_FRAME_SIZE:
        raise FramingError("Frame too large for channel", ErrorCode.FRAME_TOO_LARGE)
    return data + FRAME_DELIMITER


def decode_msg(data: bytes) -> Dict[str, Any]:
    """Decode bytes into dictionary, stripping delimiter."""
    try:
        json_str = data.rstrip(FRAME_DELIMITER).decode(ENCODING)
        msg = json.loads(json_str)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FramingError(f"Decode failed: {exc}") from exc
    if not isinstance(msg, dict):
        raise FramingError(f"Decode failed: expected JSON object, got {type(msg).__name__}")
    return msg


class FrameBuffer:
    """
    Accumulates raw channel bytes and splits them into delimiter-terminated lines.
    Lines are returned without the delimiter; empty lines are kept so callers can count them.

    Lines longer than `max_frame_size` are dropped up to the next delimiter and counted in
    `discarded`. When `strict`, the FramingError is raised by the next `feed` or `flush`
    instead, after the complete lines that preceded the oversized one have been returned.
    """

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE, strict: bool = True) -> None:
        self.max_frame_size = max_frame_size
        self.strict = strict
        self.discarded = 0
        self._pending = bytearray()
        self._discarding = False
        self._failure: Optional[FramingError] = None

    def feed(self, chunk: bytes) -> List[bytes]:
        self._raise_failure()
        self._pending.extend(chunk)
        lines: List[bytes] = []
        start = 0
        while True:
            end = self._pending.find(FRAME_DELIMITER, start)
            if end < 0:
                break
            if self._discarding:
                self._discarding = False
            elif end - start > self.max_frame_size:
                if self._reject(end - start):
                    return lines
            else:
                lines.append(bytes(self._pending[start:end]))
            start = end + len(FRAME_DELIMITER)
        del self._pending[:start]
        if len(self._pending) > self.max_frame_size:
            size = len(self._pending)
            self._pending.clear()
            if not self._discarding and not self._reject(size):
                self._discarding = True
        return lines

    def flush(self) -> List[bytes]:
        """Return the trailing undelimited line, if any (used at end of stream)."""
        self._raise_failure()
        tail = bytes(self._pending)
        self._pending.clear()
        if self._discarding or not tail:
            self._discarding = False
            return []
        return [tail]

    def _reject(self, size: int) -> bool:
        """Count an oversized line; True when splitting must stop (strict mode)."""
        self.discarded += 1
        if not self.strict:
            return False
        self._pending.clear()
        self._discarding = False
        self._failure = FramingError(f"Frame exceeds {self.max_frame_size} bytes ({size})", ErrorCode.FRAME_TOO_LARGE)
        return True

    def _raise_failure(self) -> None:
        if self._failure is not None:
            failure, self._failure = self._failure, None
            raise failure

    @property
    def pending(self) -> int:
        return len(self._pending)


__all__ = ["encode_msg", "decode_msg", "FrameBuffer"]
