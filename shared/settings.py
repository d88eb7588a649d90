from __future__ import annotations

import os
from dataclasses import dataclass, fields
from enum import StrEnum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from shared.protocol.constants import (
    DEFAULT_INPUT_PATH,
    DEFAULT_MAX_POLL_INTERVAL,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_POLL_INTERVAL,
)
from shared.protocol.envelope import ChecksumPolicy
from shared.protocol.errors import ConfigError

ENV_PREFIX = "PUBSUB_"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class CorruptFramePolicy(StrEnum):
    """What the subscriber does with a frame that fails to deserialize."""

    SKIP = "skip"
    FATAL = "fatal"


@dataclass
class Settings:
    """Configuration shared by both roles; passed explicitly to publisher and subscriber."""

    input_path: Path = Path(DEFAULT_INPUT_PATH)
    output_path: Path = Path(DEFAULT_OUTPUT_PATH)
    output_fifo: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL
    generate_synthetic: bool = True
    message_count: int = 0
    min_length: int = 5000
    max_length: int = 10000
    checksum_policy: ChecksumPolicy = ChecksumPolicy.DIGEST_EMPTY
    corrupt_frames: CorruptFramePolicy = CorruptFramePolicy.SKIP
    follow: bool = False
    report_every: int = 100
    log_level: str = "INFO"


def load_settings(env_path: str = ".env", **overrides: Any) -> Settings:
    """Load settings from env/.env, then apply explicit overrides (None values are ignored)."""
    if Path(env_path).exists():
        load_dotenv(env_path)

    settings = Settings()
    names = {f.name for f in fields(Settings)}
    for name in names:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            setattr(settings, name, _coerce_type(value, type(getattr(settings, name))))

    for name, value in overrides.items():
        if name not in names:
            raise ConfigError(f"Unknown setting: {name}")
        if value is None:
            continue
        setattr(settings, name, _coerce_type(value, type(getattr(settings, name))))

    settings.log_level = settings.log_level.upper()
    _validate_settings(settings)
    return settings


def _coerce_type(value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        if target_type is bool:
            return str(value).lower() in ("1", "true", "yes", "on")
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot convert {value!r} to {target_type.__name__}") from exc


def _validate_settings(settings: Settings) -> None:
    if settings.poll_interval <= 0:
        raise ConfigError("poll_interval must be positive")
    if settings.max_poll_interval < settings.poll_interval:
        raise ConfigError("max_poll_interval must be >= poll_interval")
    if settings.message_count < 0:
        raise ConfigError("message_count must be >= 0")
    if not (0 <= settings.min_length < settings.max_length):
        raise ConfigError("min_length must be >= 0 and below max_length")
    if settings.report_every <= 0:
        raise ConfigError("report_every must be positive")
    if settings.log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
    if settings.input_path == settings.output_path:
        raise ConfigError("input_path and output_path must differ")


__all__ = ["Settings", "CorruptFramePolicy", "ENV_PREFIX", "load_settings"]
