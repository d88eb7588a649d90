from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Bus specific error codes."""

    PROVISIONING_FAILED = 1001
    TRANSPORT_FAILED = 1002
    FRAME_INVALID = 1003
    FRAME_TOO_LARGE = 1004
    CONFIG_INVALID = 1005


class BusError(Exception):
    """Structured bus exception carrying code + message."""

    default_code = ErrorCode.TRANSPORT_FAILED

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None) -> None:
        self.code = code if code is not None else self.default_code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")


class ProvisioningError(BusError):
    """The channel or output sink could not be created."""

    default_code = ErrorCode.PROVISIONING_FAILED


class TransportError(BusError):
    """Broken pipe or hard read/write failure on a channel."""

    default_code = ErrorCode.TRANSPORT_FAILED


class FramingError(BusError):
    """A frame could not be encoded or decoded."""

    default_code = ErrorCode.FRAME_INVALID


class ConfigError(BusError):
    """Raised when configuration values are invalid."""

    default_code = ErrorCode.CONFIG_INVALID


__all__ = ["ErrorCode", "BusError", "ProvisioningError", "TransportError", "FramingError", "ConfigError"]
