"""Tests for ffprobe output parsing and the prober."""

import json
from pathlib import Path

import pytest

from app.modules.transcoding.errors import ProbeError
from app.modules.transcoding.models import MediaInfo
from app.modules.transcoding.probe import MediaProber, parse_probe_output

from support import FAILING_TOOL, write_executable


def _report(streams, fmt=None) -> str:
    return json.dumps({"streams": streams, "format": fmt or {}})


class TestParseProbeOutput:

    def test_picks_first_video_stream(self) -> None:
        info = parse_probe_output(_report(
            [
                {"codec_type": "audio"},
                {"codec_type": "video", "width": 1280, "height": 720},
                {"codec_type": "video", "width": 320, "height": 240},
            ],
            {"duration": "20.5", "bit_rate": "2500000"},
        ))
        assert info == MediaInfo(duration_seconds=20.5, width=1280, height=720, bitrate="2500000")

    def test_missing_fields_default_to_zero(self) -> None:
        info = parse_probe_output(_report([{"codec_type": "video"}]))
        assert info.duration_seconds == 0.0
        assert info.width == 0
        assert info.height == 0
        assert info.bitrate == "0"

    def test_unparseable_duration_defaults_to_zero(self) -> None:
        info = parse_probe_output(_report([{"codec_type": "video"}], {"duration": "N/A"}))
        assert info.duration_seconds == 0.0

    def test_no_video_stream(self) -> None:
        with pytest.raises(ProbeError, match="No video stream"):
            parse_probe_output(_report([{"codec_type": "audio"}]))

    def test_no_streams_key(self) -> None:
        with pytest.raises(ProbeError):
            parse_probe_output(json.dumps({"format": {}}))

    @pytest.mark.parametrize(
        "stdout",
        [
            "",
            "not json",
            "[1, 2]",
            '{"streams": 5}',
            '{"streams": {"codec_type": "video"}}',
            '{"streams": [{"codec_type": "video"}], "format": "oops"}',
            '{"streams": [{"codec_type": "video"}], "format": [1]}',
        ],
    )
    def test_invalid_report(self, stdout: str) -> None:
        with pytest.raises(ProbeError):
            parse_probe_output(stdout)


class TestMediaProber:

    def test_command_requests_json_report(self) -> None:
        cmd = MediaProber("ffprobe").build_probe_command("/tmp/in.mp4")
        assert cmd == [
            "ffprobe", "-v", "quiet", "-print_format", "json",
            "-show_format", "-show_streams", "/tmp/in.mp4",
        ]

    def test_probe_reads_tool_output(self, tmp_path: Path, fake_ffprobe: Path) -> None:
        video = tmp_path / "clip.mov"
        video.write_bytes(b"\x00" * 1024)

        info = MediaProber(str(fake_ffprobe)).probe(str(video))

        assert info.duration_seconds == pytest.approx(20.0)
        assert (info.width, info.height) == (1920, 1080)

    def test_zero_byte_file_fails(self, tmp_path: Path, fake_ffprobe: Path) -> None:
        video = tmp_path / "empty.mp4"
        video.write_bytes(b"")

        with pytest.raises(ProbeError, match="failed with code 1"):
            MediaProber(str(fake_ffprobe)).probe(str(video))

    def test_non_zero_exit_fails(self, tmp_path: Path) -> None:
        tool = write_executable(tmp_path, "ffprobe", FAILING_TOOL)
        with pytest.raises(ProbeError) as exc_info:
            MediaProber(str(tool)).probe(str(tmp_path / "x.mp4"))
        assert exc_info.value.timed_out is False
