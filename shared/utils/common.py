from __future__ import annotations

import hashlib
import random
import string
from datetime import datetime, timezone
from typing import Optional

ALPHANUMERIC = string.ascii_letters + string.digits


def md5_hex(data: str) -> str:
    """Lowercase hex MD5 of the UTF-8 bytes of `data` (corruption check, not security)."""
    return hashlib.md5(data.encode("utf-8"), usedforsecurity=False).hexdigest()


def utc_isoformat() -> str:
    """Current UTC wall-clock time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def random_alphanumeric(length: int, rng: Optional[random.Random] = None) -> str:
    """Generate an alphanumeric string of exactly `length` characters."""
    rng = rng or random
    return "".join(rng.choices(ALPHANUMERIC, k=length))


__all__ = ["md5_hex", "utc_isoformat", "random_alphanumeric"]
