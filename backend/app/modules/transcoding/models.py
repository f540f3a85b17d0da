"""Domain models for the ingest pipeline.

All of these live only for the duration of one ``process()`` call.
"""

import re
import unicodedata
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_OWNER_KEY = "guest"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


class QualityTier(str, Enum):
    """Named encode presets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class JobStage(str, Enum):
    """States a job passes through inside the orchestrator."""
    IDLE = "idle"
    PROBING = "probing"
    TRANSCODING = "transcoding"
    PUBLISHING = "publishing"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


class ArtifactKind(str, Enum):
    """Kinds of objects a job writes to storage."""
    ORIGINAL = "original"
    MANIFEST = "manifest"
    SEGMENT = "segment"


@dataclass(frozen=True)
class QualityPreset:
    """x264 rate control settings for one quality tier."""
    crf: int
    max_bitrate: str  # ffmpeg rate string, e.g. "1500k"
    buffer_size: str

    @property
    def max_bitrate_kbps(self) -> int:
        return parse_rate_kbps(self.max_bitrate)


# Higher tier => lower CRF => higher allowed bitrate
QUALITY_PRESETS = {
    QualityTier.LOW: QualityPreset(crf=28, max_bitrate="500k", buffer_size="1000k"),
    QualityTier.MEDIUM: QualityPreset(crf=23, max_bitrate="1500k", buffer_size="3000k"),
    QualityTier.HIGH: QualityPreset(crf=18, max_bitrate="3000k", buffer_size="6000k"),
}


def get_quality_preset(tier: QualityTier) -> QualityPreset:
    """Get the rate control preset for a quality tier."""
    return QUALITY_PRESETS[QualityTier(tier)]


def parse_rate_kbps(rate: str) -> int:
    """Convert an ffmpeg rate string ("500k", "3M", "64000") to kbit/s."""
    value = rate.strip().lower()
    if value.endswith("m"):
        return int(float(value[:-1]) * 1000)
    if value.endswith("k"):
        return int(float(value[:-1]))
    return int(float(value) / 1000)


def sanitize_owner_key(raw: str) -> str:
    """Normalize a guest display name into a storage-path segment.

    The result is lowercase ASCII with hyphens as the only separator and no
    leading or trailing hyphen. Accented characters are folded to their base
    letter; anything else outside ``[a-z0-9]`` becomes a hyphen and runs of
    hyphens collapse. Applying it twice gives the same result.
    """
    folded = unicodedata.normalize("NFKD", raw or "")
    ascii_only = folded.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_ALNUM_RUN.sub("-", ascii_only).strip("-")


@dataclass(frozen=True)
class JobIdentity:
    """Identity of one ingest job; namespaces its workspace and storage keys."""
    video_id: str
    owner_key: str

    @classmethod
    def create(cls, guest_name: str, video_id: Optional[str] = None) -> "JobIdentity":
        """Build an identity, generating a video ID when none is supplied."""
        owner_key = sanitize_owner_key(guest_name) or DEFAULT_OWNER_KEY
        return cls(video_id=video_id or str(uuid.uuid4()), owner_key=owner_key)


@dataclass(frozen=True)
class MediaInfo:
    """What ffprobe tells us about the input."""
    duration_seconds: float
    width: int
    height: int
    bitrate: str = "0"


@dataclass(frozen=True)
class Artifact:
    """One object destined for storage."""
    kind: ArtifactKind
    relative_name: str
    content: bytes
    content_type: str
