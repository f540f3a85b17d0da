"""Property-based tests for manifest rewriting and artifact publishing."""

from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from app.modules.transcoding import paths
from app.modules.transcoding.errors import PublishError
from app.modules.transcoding.models import JobIdentity, MediaInfo
from app.modules.transcoding.publisher import HLSPublisher, rewrite_manifest

from support import RecordingStorage

HLS_PREFIX = "wedding/jane-doe/hls/vid-1"
PROXY = "/api/s3-proxy"
BASE = f"/api/s3-proxy/{HLS_PREFIX}"


def _manifest(durations: list[float]) -> str:
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:6",
        "#EXT-X-TARGETDURATION:6",
        "#EXT-X-MEDIA-SEQUENCE:0",
        "#EXT-X-PLAYLIST-TYPE:VOD",
    ]
    for i, duration in enumerate(durations):
        lines.append(f"#EXTINF:{duration:.6f},")
        lines.append(paths.segment_filename(i))
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


durations_strategy = st.lists(
    st.floats(min_value=0.1, max_value=10.0, allow_nan=False), min_size=1, max_size=30
)


class TestRewriteManifest:

    @given(durations=durations_strategy)
    @settings(max_examples=100)
    def test_only_segment_lines_change(self, durations: list[float]) -> None:
        original = _manifest(durations)
        rewritten = rewrite_manifest(original, HLS_PREFIX, PROXY)

        before, after = original.splitlines(), rewritten.splitlines()
        assert len(before) == len(after)
        for old, new in zip(before, after):
            if paths.is_segment_filename(old):
                assert new == f"{BASE}/{old}"
            else:
                assert new == old

    @given(durations=durations_strategy)
    @settings(max_examples=100)
    def test_rewrite_is_idempotent(self, durations: list[float]) -> None:
        once = rewrite_manifest(_manifest(durations), HLS_PREFIX, PROXY)
        assert rewrite_manifest(once, HLS_PREFIX, PROXY) == once

    def test_segment_numbers_are_not_confused(self) -> None:
        text = "chunk1.ts\nchunk10.ts\nchunk1.tsx\nmychunk2.ts\n"
        assert rewrite_manifest(text, HLS_PREFIX, PROXY) == (
            f"{BASE}/chunk1.ts\n{BASE}/chunk10.ts\nchunk1.tsx\nmychunk2.ts\n"
        )

    def test_proxy_prefix_slashes_are_normalized(self) -> None:
        assert rewrite_manifest("chunk0.ts", HLS_PREFIX, "api/s3-proxy/") == f"{BASE}/chunk0.ts"

    @pytest.mark.parametrize("proxy_prefix", ["", "/", "//"])
    def test_empty_proxy_prefix_stays_host_relative(self, proxy_prefix: str) -> None:
        rewritten = rewrite_manifest("chunk0.ts", HLS_PREFIX, proxy_prefix)
        assert rewritten == f"/{HLS_PREFIX}/chunk0.ts"
        assert paths.public_path(proxy_prefix, f"{HLS_PREFIX}/index.m3u8") == (
            f"/{HLS_PREFIX}/index.m3u8"
        )

    @given(
        proxy_prefix=st.text(alphabet="/abc-", max_size=12),
        key=st.text(alphabet="/abc-.", min_size=1, max_size=30),
    )
    @settings(max_examples=200)
    def test_public_path_never_starts_with_double_slash(self, proxy_prefix: str, key: str) -> None:
        path = paths.public_path(proxy_prefix, key)
        assert path.startswith("/")
        assert not path.startswith("//")


def _write_hls_output(directory: Path, count: int) -> tuple[Path, list[Path]]:
    segments = []
    for i in range(count):
        segment = directory / paths.segment_filename(i)
        segment.write_bytes(bytes([i]) * 188)
        segments.append(segment)
    manifest = directory / paths.MANIFEST_FILENAME
    manifest.write_text(_manifest([6.0] * count))
    return manifest, segments


class TestHLSPublisher:

    identity = JobIdentity(video_id="vid-1", owner_key="jane-doe")

    def _publish(self, storage, tmp_path: Path, count: int = 4, filename: str = "clip.mov"):
        manifest, segments = _write_hls_output(tmp_path, count)
        publisher = HLSPublisher(storage, namespace="wedding", proxy_prefix=PROXY)
        return publisher.publish(
            self.identity,
            b"original-bytes",
            filename,
            manifest,
            segments,
            MediaInfo(duration_seconds=20.0, width=1920, height=1080),
        )

    def test_upload_order_and_content_types(self, tmp_path: Path) -> None:
        storage = RecordingStorage()
        self._publish(storage, tmp_path)

        assert storage.keys == [
            "wedding/jane-doe/originals/vid-1.mov",
            f"{HLS_PREFIX}/chunk0.ts",
            f"{HLS_PREFIX}/chunk1.ts",
            f"{HLS_PREFIX}/chunk2.ts",
            f"{HLS_PREFIX}/chunk3.ts",
            f"{HLS_PREFIX}/index.m3u8",
        ]
        content_types = [content_type for _, _, content_type in storage.puts]
        assert content_types == (
            ["video/quicktime"] + ["video/mp2t"] * 4 + ["application/vnd.apple.mpegurl"]
        )

    def test_uploaded_manifest_is_rewritten(self, tmp_path: Path) -> None:
        storage = RecordingStorage()
        result = self._publish(storage, tmp_path)

        stored = storage.objects[f"{HLS_PREFIX}/index.m3u8"].decode("utf-8")
        referenced = [line for line in stored.splitlines() if not line.startswith("#")]
        assert referenced == result.segment_public_paths
        assert "\nchunk0.ts" not in stored

    def test_result_describes_published_objects(self, tmp_path: Path) -> None:
        result = self._publish(RecordingStorage(), tmp_path)

        assert result.video_id == "vid-1"
        assert result.original_storage_key == "wedding/jane-doe/originals/vid-1.mov"
        assert result.manifest_storage_key_prefix == HLS_PREFIX
        assert result.manifest_public_path == f"{BASE}/index.m3u8"
        assert result.segment_public_paths == [f"{BASE}/chunk{i}.ts" for i in range(4)]
        assert result.duration_seconds == 20.0

    def test_original_without_extension_defaults_to_mp4(self, tmp_path: Path) -> None:
        storage = RecordingStorage()
        self._publish(storage, tmp_path, count=1, filename="upload")
        key, _, content_type = storage.puts[0]
        assert key == "wedding/jane-doe/originals/vid-1.mp4"
        assert content_type == "video/mp4"

    @pytest.mark.parametrize("failing", [0, 1, 3])
    def test_failed_upload_stops_before_manifest(self, tmp_path: Path, failing: int) -> None:
        failing_key = f"{HLS_PREFIX}/chunk{failing}.ts"
        storage = RecordingStorage(fail_on=lambda key: key == failing_key)

        with pytest.raises(PublishError) as exc_info:
            self._publish(storage, tmp_path)

        assert exc_info.value.key == failing_key
        assert storage.keys[0] == "wedding/jane-doe/originals/vid-1.mov"
        assert len(storage.keys) == 1 + failing
        assert f"{HLS_PREFIX}/index.m3u8" not in storage.objects

    def test_undecodable_manifest_becomes_publish_error(self, tmp_path: Path) -> None:
        manifest, segments = _write_hls_output(tmp_path, 2)
        manifest.write_bytes(b"#EXTM3U\n\xff\xfe\xfa\n")
        storage = RecordingStorage()
        publisher = HLSPublisher(storage, namespace="wedding", proxy_prefix=PROXY)

        with pytest.raises(PublishError) as exc_info:
            publisher.publish(
                self.identity, b"original", "clip.mp4", manifest, segments,
                MediaInfo(duration_seconds=12.0, width=640, height=360),
            )

        assert exc_info.value.key == f"{HLS_PREFIX}/index.m3u8"
        assert f"{HLS_PREFIX}/index.m3u8" not in storage.objects

    def test_storage_exception_becomes_publish_error(self, tmp_path: Path) -> None:
        class ExplodingStorage(RecordingStorage):
            def upload_bytes(self, content, key, content_type="application/octet-stream"):
                raise ConnectionError("network down")

        with pytest.raises(PublishError, match="network down"):
            self._publish(ExplodingStorage(), tmp_path)
