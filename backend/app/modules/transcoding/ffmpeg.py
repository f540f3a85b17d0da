"""FFmpeg HLS segmentation.

Encodes the input to H.264/AAC and splits it into a VOD HLS playlist with
independently decodable MPEG-TS segments.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from app.core.metrics import record_process_timeout
from app.modules.transcoding.errors import TranscodeError
from app.modules.transcoding.models import QualityTier, get_quality_preset
from app.modules.transcoding.paths import (
    MANIFEST_FILENAME,
    SEGMENT_FILENAME_TEMPLATE,
    is_segment_filename,
    sort_segments,
)
from app.modules.transcoding.process import ProcessTimeoutError, run_process
from app.modules.transcoding.schemas import ProcessingOptions

logger = logging.getLogger(__name__)

DEFAULT_TRANSCODE_TIMEOUT_SECONDS = 300.0

_PROGRESS_RE = re.compile(r"time=\s*(\d+:\d+:\d+(?:\.\d+)?)")


@dataclass
class HLSEncodeSettings:
    """Fixed encoder settings shared by every quality tier."""
    video_codec: str = "libx264"
    encoder_preset: str = "fast"
    audio_codec: str = "aac"
    audio_sample_rate: int = 44100
    audio_bitrate: str = "128k"
    audio_channels: int = 2
    playlist_type: str = "vod"


@dataclass
class TranscodeOutput:
    """Files produced by a successful segmentation run."""
    manifest_path: Path
    segment_paths: list[Path] = field(default_factory=list)


def last_progress_marker(stderr: str) -> Optional[str]:
    """Return the last ``time=HH:MM:SS.xx`` value ffmpeg reported, if any."""
    matches = _PROGRESS_RE.findall(stderr)
    return matches[-1] if matches else None


class HLSTranscoder:
    """FFmpeg-based HLS segmenter."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout_seconds: float = DEFAULT_TRANSCODE_TIMEOUT_SECONDS,
        encode_settings: Optional[HLSEncodeSettings] = None,
    ):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout_seconds: Hard wall-clock budget for one run
            encode_settings: Codec settings (defaults to ``HLSEncodeSettings()``)
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout_seconds = timeout_seconds
        self.encode_settings = encode_settings or HLSEncodeSettings()

    def build_hls_command(
        self,
        input_path: Union[str, Path],
        output_dir: Union[str, Path],
        options: ProcessingOptions,
    ) -> list[str]:
        """Build the ffmpeg command line for one job.

        Args:
            input_path: Source video
            output_dir: Directory receiving the manifest and segments
            options: Quality tier and segment duration

        Returns:
            FFmpeg command as list of arguments
        """
        output_dir = Path(output_dir)
        preset = get_quality_preset(QualityTier(options.quality))
        enc = self.encode_settings

        return [
            self.ffmpeg_path,
            "-i", str(input_path),
            # Video settings
            "-c:v", enc.video_codec,
            "-preset", enc.encoder_preset,
            "-crf", str(preset.crf),
            "-maxrate", preset.max_bitrate,
            "-bufsize", preset.buffer_size,
            # Keyframe on every segment boundary so cuts land on time
            "-force_key_frames", f"expr:gte(t,n_forced*{options.segment_duration_seconds})",
            # Audio settings
            "-c:a", enc.audio_codec,
            "-ar", str(enc.audio_sample_rate),
            "-b:a", enc.audio_bitrate,
            "-ac", str(enc.audio_channels),
            # Output format
            "-f", "hls",
            "-hls_time", str(options.segment_duration_seconds),
            "-hls_playlist_type", enc.playlist_type,
            "-hls_segment_filename", str(output_dir / SEGMENT_FILENAME_TEMPLATE),
            "-hls_flags", "independent_segments",
            "-y",  # Overwrite output
            str(output_dir / MANIFEST_FILENAME),
        ]

    def collect_output(self, output_dir: Union[str, Path]) -> TranscodeOutput:
        """Locate the manifest and the ordered segments in ``output_dir``.

        Raises:
            TranscodeError: If no manifest was written or the output is unreadable
        """
        output_dir = Path(output_dir)
        manifest_path = output_dir / MANIFEST_FILENAME
        if not manifest_path.is_file():
            raise TranscodeError(f"FFmpeg produced no {MANIFEST_FILENAME}")

        try:
            segments = sort_segments(
                p for p in output_dir.iterdir() if p.is_file() and is_segment_filename(p.name)
            )
        except OSError as e:
            raise TranscodeError(f"Could not list FFmpeg output: {e}") from e
        return TranscodeOutput(manifest_path=manifest_path, segment_paths=segments)

    def _log_progress(self, stderr: str) -> None:
        marker = last_progress_marker(stderr)
        if marker:
            logger.debug("FFmpeg progress: reached %s", marker)

    def transcode(
        self,
        input_path: Union[str, Path],
        output_dir: Union[str, Path],
        options: ProcessingOptions,
    ) -> TranscodeOutput:
        """Segment ``input_path`` into ``output_dir``.

        Raises:
            TranscodeError: On spawn failure, timeout, non-zero exit or missing output
        """
        cmd = self.build_hls_command(input_path, output_dir, options)

        try:
            result = run_process(cmd, self.timeout_seconds, on_stderr=self._log_progress)
        except ProcessTimeoutError as e:
            record_process_timeout("ffmpeg")
            raise TranscodeError(
                f"FFmpeg process timed out after {self.timeout_seconds:g} seconds",
                timed_out=True,
            ) from e
        except OSError as e:
            raise TranscodeError(f"FFmpeg spawn error: {e}") from e

        logger.debug("FFmpeg completed with code %s", result.returncode)
        if result.returncode != 0:
            # ffmpeg prints its banner first; the tail holds the actual error
            tail = "\n".join(result.stderr.strip().splitlines()[-20:])
            raise TranscodeError(f"FFmpeg failed with code {result.returncode}: {tail}")

        return self.collect_output(output_dir)
