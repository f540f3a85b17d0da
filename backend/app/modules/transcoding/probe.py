"""Media inspection with ffprobe."""

import json
import logging

from app.core.metrics import record_process_timeout
from app.modules.transcoding.errors import ProbeError
from app.modules.transcoding.models import MediaInfo
from app.modules.transcoding.process import ProcessTimeoutError, run_process

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 30.0


def _as_float(value, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if result >= 0 else default


def _as_int(value, default: int = 0) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    return result if result >= 0 else default


def parse_probe_output(stdout: str) -> MediaInfo:
    """Parse ffprobe's JSON report into ``MediaInfo``.

    Uses the format-level ``duration`` and ``bit_rate`` and the dimensions
    of the first video stream.

    Raises:
        ProbeError: If the report is not valid JSON or has no video stream
    """
    try:
        info = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Failed to parse video info: {e}") from e

    if not isinstance(info, dict):
        raise ProbeError("Failed to parse video info: report is not an object")

    streams = info.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeError("Failed to parse video info: streams is not a list")
    video_stream = next(
        (s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise ProbeError("No video stream found")

    fmt = info.get("format") or {}
    if not isinstance(fmt, dict):
        raise ProbeError("Failed to parse video info: format is not an object")
    return MediaInfo(
        duration_seconds=_as_float(fmt.get("duration")),
        width=_as_int(video_stream.get("width")),
        height=_as_int(video_stream.get("height")),
        bitrate=str(fmt.get("bit_rate") or "0"),
    )


class MediaProber:
    """Runs ffprobe against a local file."""

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ):
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    def build_probe_command(self, input_path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(input_path),
        ]

    def probe(self, input_path: str) -> MediaInfo:
        """Inspect ``input_path``.

        Args:
            input_path: Path to the local video file

        Returns:
            MediaInfo for the first video stream

        Raises:
            ProbeError: On spawn failure, timeout, non-zero exit or bad output
        """
        cmd = self.build_probe_command(input_path)

        try:
            result = run_process(cmd, self.timeout_seconds)
        except ProcessTimeoutError as e:
            record_process_timeout("ffprobe")
            raise ProbeError(
                f"FFprobe process timed out after {self.timeout_seconds:g} seconds",
                timed_out=True,
            ) from e
        except OSError as e:
            raise ProbeError(f"FFprobe spawn error: {e}") from e

        logger.debug("FFprobe completed with code %s", result.returncode)
        if result.returncode != 0:
            raise ProbeError(
                f"FFprobe failed with code {result.returncode}: {result.stderr.strip()}"
            )

        return parse_probe_output(result.stdout)
