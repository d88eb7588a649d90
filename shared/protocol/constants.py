"""Protocol-wide constants shared by publisher and subscriber."""

ENCODING = "utf-8"
FRAME_DELIMITER = b"\n"
MAX_FRAME_SIZE = 1024 * 1024  # 1 MiB upper bound for a single frame
READ_CHUNK_SIZE = 64 * 1024

DEFAULT_INPUT_PATH = "/tmp/pub-in-fifo"
DEFAULT_OUTPUT_PATH = "/tmp/pub-out-file"
DEFAULT_POLL_INTERVAL = 0.3  # seconds
DEFAULT_MAX_POLL_INTERVAL = 2.0  # seconds
CHANNEL_MODE = 0o700

__all__ = [
    "ENCODING",
    "FRAME_DELIMITER",
    "MAX_FRAME_SIZE",
    "READ_CHUNK_SIZE",
    "DEFAULT_INPUT_PATH",
    "DEFAULT_OUTPUT_PATH",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_MAX_POLL_INTERVAL",
    "CHANNEL_MODE",
]
