"""Fixtures for the ingest pipeline tests."""

from pathlib import Path
from typing import Optional

import pytest

from app.core.storage import Storage, StorageConfig
from app.modules.transcoding.ffmpeg import HLSTranscoder
from app.modules.transcoding.probe import MediaProber
from app.modules.transcoding.publisher import HLSPublisher
from app.modules.transcoding.service import VideoIngestService
from app.modules.transcoding.workspace import WorkspaceManager

from support import FAKE_FFMPEG, FAKE_FFPROBE, write_executable


@pytest.fixture
def tools_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def fake_ffprobe(tools_dir: Path) -> Path:
    return write_executable(tools_dir, "ffprobe", FAKE_FFPROBE.replace("DURATION", "20.000000"))


@pytest.fixture
def fake_ffmpeg(tools_dir: Path) -> Path:
    return write_executable(tools_dir, "ffmpeg", FAKE_FFMPEG.replace("DURATION", "20.0"))


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    return tmp_path / "temp"


@pytest.fixture
def local_storage(tmp_path: Path) -> Storage:
    return Storage(StorageConfig(backend="local", local_path=str(tmp_path / "store")))


@pytest.fixture
def make_service(temp_root: Path, fake_ffprobe: Path, fake_ffmpeg: Path):
    """Factory building a service over fake tools; any part can be swapped."""

    def _make(
        storage: Storage,
        ffprobe: Optional[Path] = None,
        ffmpeg: Optional[Path] = None,
        probe_timeout: float = 10.0,
        transcode_timeout: float = 10.0,
    ) -> VideoIngestService:
        return VideoIngestService(
            workspace_manager=WorkspaceManager(temp_root),
            prober=MediaProber(str(ffprobe or fake_ffprobe), timeout_seconds=probe_timeout),
            transcoder=HLSTranscoder(str(ffmpeg or fake_ffmpeg), timeout_seconds=transcode_timeout),
            publisher=HLSPublisher(storage, namespace="wedding", proxy_prefix="/api/s3-proxy"),
        )

    return _make
