"""Pydantic schemas for the ingest pipeline boundary."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.modules.transcoding.models import QualityTier

MAX_GUEST_NAME_LENGTH = 100
DEFAULT_SEGMENT_DURATION_SECONDS = 6


class ProcessingOptions(BaseModel):
    """Per-call options supplied by the upload layer."""
    guest_name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_GUEST_NAME_LENGTH,
        description="Display name of the uploading guest",
    )
    video_id: Optional[str] = Field(
        None,
        min_length=1,
        description="Caller-supplied unique video ID; generated when omitted",
    )
    quality: QualityTier = Field(default=QualityTier.MEDIUM, description="Encode quality tier")
    segment_duration_seconds: int = Field(
        default=DEFAULT_SEGMENT_DURATION_SECONDS,
        gt=0,
        description="Target HLS segment duration",
    )

    @field_validator("guest_name", mode="before")
    @classmethod
    def strip_guest_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class ProcessingResult(BaseModel):
    """Descriptor of a fully published job."""
    video_id: str
    original_storage_key: str
    manifest_storage_key_prefix: str
    manifest_public_path: str
    segment_public_paths: list[str]
    duration_seconds: float = Field(..., ge=0)
