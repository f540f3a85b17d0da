"""Exceptions raised by the ingest pipeline.

Each pipeline stage raises its own subclass. The orchestrator stamps the
job's ``video_id`` and the failing ``stage`` onto the exception before it
propagates, so callers get a single failure carrying full job context.
"""

from typing import Optional


class TranscodingError(Exception):
    """Base exception for ingest pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        video_id: Optional[str] = None,
        stage: Optional[str] = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.video_id = video_id
        self.stage = stage
        self.timed_out = timed_out

    def bind(self, video_id: str, stage: str) -> "TranscodingError":
        """Attach job context, keeping any context already present."""
        self.video_id = self.video_id or video_id
        self.stage = self.stage or stage
        return self

    def to_dict(self) -> dict:
        """Caller-facing summary of the failure."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "video_id": self.video_id,
            "stage": self.stage,
            "timed_out": self.timed_out,
        }

    def __str__(self) -> str:
        if self.video_id and self.stage:
            return f"[{self.video_id}/{self.stage}] {self.message}"
        return self.message


class WorkspaceError(TranscodingError):
    """Raised when the per-job scratch directory cannot be provisioned."""


class ProbeError(TranscodingError):
    """Raised when ffprobe fails, times out, or reports no video stream."""


class TranscodeError(TranscodingError):
    """Raised when ffmpeg fails to produce the HLS output."""


class PublishError(TranscodingError):
    """Raised when any artifact upload fails."""

    def __init__(self, message: str, *, key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key
