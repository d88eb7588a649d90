"""
Shared protocol package that centralizes the message envelope, framing helpers,
wire validation and error types for both publisher and subscriber.
"""

from .constants import ENCODING, FRAME_DELIMITER, MAX_FRAME_SIZE
from .envelope import (
    ChecksumPolicy,
    Checksummed,
    ChecksumState,
    Envelope,
    IntegrityStatus,
    Unchecksummed,
    compute_checksum,
)
from .errors import BusError, ConfigError, ErrorCode, FramingError, ProvisioningError, TransportError
from .framing import FrameBuffer, decode_msg, encode_msg
from .validator import load_schema, validate_frame

__all__ = [
    "ENCODING",
    "FRAME_DELIMITER",
    "MAX_FRAME_SIZE",
    "ChecksumPolicy",
    "Checksummed",
    "ChecksumState",
    "Envelope",
    "IntegrityStatus",
    "Unchecksummed",
    "compute_checksum",
    "BusError",
    "ConfigError",
    "ErrorCode",
    "FramingError",
    "ProvisioningError",
    "TransportError",
    "FrameBuffer",
    "encode_msg",
    "decode_msg",
    "load_schema",
    "validate_frame",
]
