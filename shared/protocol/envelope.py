from __future__ import annotations

from enum import StrEnum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from shared.utils.common import md5_hex, utc_isoformat

from .constants import ENCODING
from .errors import FramingError
from .framing import decode_msg, encode_msg
from .validator import validate_frame


class ChecksumPolicy(StrEnum):
    """How empty content is checksummed."""

    DIGEST_EMPTY = "digest-empty"
    DEFER_EMPTY = "defer-empty"


class IntegrityStatus(StrEnum):
    VALID = "valid"
    MISMATCH = "mismatch"
    UNCHECKSUMMED = "unchecksummed"


class Unchecksummed(BaseModel):
    """Envelope has not been checksummed yet (`null` on the wire)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unchecksummed"] = "unchecksummed"


class Checksummed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["checksummed"] = "checksummed"
    digest: str


ChecksumState = Union[Checksummed, Unchecksummed]


def compute_checksum(content: str, policy: ChecksumPolicy = ChecksumPolicy.DIGEST_EMPTY) -> ChecksumState:
    if not content and policy == ChecksumPolicy.DEFER_EMPTY:
        return Unchecksummed()
    return Checksummed(digest=md5_hex(content))


class Envelope(BaseModel):
    """Unit of transport: content + integrity digest + advisory timestamp."""

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    content: str = Field(default="", description="Arbitrary text payload, may be empty")
    checksum: ChecksumState = Field(
        default_factory=Unchecksummed,
        validation_alias=AliasChoices("checksum", "check_sum"),
        description="Digest of content as of the last finalize",
    )
    created_at: str = Field(default_factory=utc_isoformat, description="ISO-8601 creation time (advisory)")

    @field_validator("content")
    @classmethod
    def _require_encodable(cls, value: str) -> str:
        # JSON escapes can smuggle in lone surrogates that cannot be digested
        try:
            value.encode(ENCODING)
        except UnicodeEncodeError as exc:
            raise ValueError(f"content is not valid {ENCODING}: {exc.reason}") from exc
        return value

    @field_validator("checksum", mode="before")
    @classmethod
    def _coerce_checksum(cls, value: Any) -> Any:
        if value is None:
            return Unchecksummed()
        if isinstance(value, str):
            return Checksummed(digest=value)
        return value

    @field_serializer("checksum")
    def _serialize_checksum(self, value: ChecksumState) -> Optional[str]:
        return value.digest if isinstance(value, Checksummed) else None

    @classmethod
    def create(cls, content: str, policy: ChecksumPolicy = ChecksumPolicy.DIGEST_EMPTY) -> "Envelope":
        try:
            return cls(content=content, checksum=compute_checksum(content, policy))
        except (ValidationError, UnicodeEncodeError) as exc:
            raise FramingError(f"Cannot build envelope: {exc}") from exc

    def finalize(self, policy: ChecksumPolicy = ChecksumPolicy.DIGEST_EMPTY) -> "Envelope":
        """(Re)compute the digest over the current content."""
        self.checksum = compute_checksum(self.content, policy)
        return self

    def integrity(self) -> IntegrityStatus:
        if isinstance(self.checksum, Unchecksummed):
            return IntegrityStatus.UNCHECKSUMMED
        if md5_hex(self.content) != self.checksum.digest:
            return IntegrityStatus.MISMATCH
        return IntegrityStatus.VALID

    def is_valid(self) -> bool:
        return self.integrity() is IntegrityStatus.VALID

    @property
    def digest(self) -> Optional[str]:
        return self.checksum.digest if isinstance(self.checksum, Checksummed) else None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_frame(self) -> bytes:
        return encode_msg(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Envelope":
        validate_frame(data)
        try:
            return cls.model_validate(data)
        except (ValidationError, UnicodeEncodeError) as exc:
            raise FramingError(f"Envelope validation failed: {exc}") from exc

    @classmethod
    def from_frame(cls, data: bytes) -> "Envelope":
        return cls.from_dict(decode_msg(data))


__all__ = [
    "ChecksumPolicy",
    "IntegrityStatus",
    "Unchecksummed",
    "Checksummed",
    "ChecksumState",
    "compute_checksum",
    "Envelope",
]
