"""Ingest orchestration.

Runs probe -> transcode -> publish for one uploaded video inside a private
workspace that is removed however the job ends.
"""

import logging
import shutil
from contextlib import contextmanager
from typing import Iterator, Optional

from app.core.config import Settings, settings as default_settings
from app.core.logging import correlation_scope, log_error, log_info
from app.core.metrics import record_job, track_stage
from app.core.storage import Storage, get_storage
from app.core.tracing import create_span
from app.modules.transcoding import paths
from app.modules.transcoding.errors import TranscodingError, WorkspaceError
from app.modules.transcoding.ffmpeg import HLSEncodeSettings, HLSTranscoder
from app.modules.transcoding.models import JobIdentity, JobStage
from app.modules.transcoding.probe import MediaProber
from app.modules.transcoding.publisher import HLSPublisher
from app.modules.transcoding.schemas import ProcessingOptions, ProcessingResult
from app.modules.transcoding.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class VideoIngestService:
    """Turns an uploaded video into a published HLS stream.

    The service keeps no per-job state, so a single instance can run
    concurrent jobs as long as callers supply distinct video IDs.
    """

    def __init__(
        self,
        workspace_manager: WorkspaceManager,
        prober: MediaProber,
        transcoder: HLSTranscoder,
        publisher: HLSPublisher,
    ):
        self.workspace_manager = workspace_manager
        self.prober = prober
        self.transcoder = transcoder
        self.publisher = publisher

    @contextmanager
    def _stage(self, identity: JobIdentity, stage: JobStage) -> Iterator[None]:
        log_info(logger, f"Job entering {stage.value}", video_id=identity.video_id, stage=stage.value)
        with create_span(
            f"video_ingest.{stage.value}",
            attributes={"video.id": identity.video_id},
        ), track_stage(stage.value):
            try:
                yield
            except TranscodingError as e:
                e.bind(identity.video_id, stage.value)
                raise

    def process(
        self,
        raw_bytes: bytes,
        original_filename: str,
        options: ProcessingOptions,
    ) -> ProcessingResult:
        """Process an uploaded video end to end.

        Args:
            raw_bytes: The uploaded file
            original_filename: Name the file was uploaded with
            options: Guest, video ID, quality tier and segment duration

        Returns:
            ProcessingResult for the published stream

        Raises:
            WorkspaceError: Scratch space could not be provisioned
            ProbeError: ffprobe failed or found no video stream
            TranscodeError: ffmpeg failed or timed out
            PublishError: An upload failed
        """
        identity = JobIdentity.create(options.guest_name, options.video_id)

        with correlation_scope(identity.video_id), create_span(
            "video_ingest.process",
            attributes={"video.id": identity.video_id, "video.owner": identity.owner_key},
        ):
            log_info(
                logger,
                "Starting video processing",
                video_id=identity.video_id,
                original_filename=original_filename,
                size_bytes=len(raw_bytes),
                quality=options.quality.value,
            )
            try:
                result = self._run(identity, raw_bytes, original_filename, options)
            except TranscodingError as e:
                record_job(JobStage.FAILED.value)
                log_error(
                    logger,
                    "Video processing failed",
                    exception=e,
                    video_id=identity.video_id,
                    stage=e.stage,
                )
                raise

            record_job(JobStage.DONE.value)
            log_info(
                logger,
                "Video processing completed",
                video_id=identity.video_id,
                segment_count=len(result.segment_public_paths),
                duration_seconds=result.duration_seconds,
            )
            return result

    def _run(
        self,
        identity: JobIdentity,
        raw_bytes: bytes,
        original_filename: str,
        options: ProcessingOptions,
    ) -> ProcessingResult:
        try:
            workspace = self.workspace_manager.provision(
                identity.video_id, paths.original_extension(original_filename)
            )
        except WorkspaceError as e:
            raise e.bind(identity.video_id, JobStage.IDLE.value)
        try:
            with self._stage(identity, JobStage.PROBING):
                self.workspace_manager.write_input(workspace, raw_bytes)
                media_info = self.prober.probe(str(workspace.input_path))
            log_info(
                logger,
                f"Video info: {media_info.width}x{media_info.height}, "
                f"duration: {media_info.duration_seconds}s",
                video_id=identity.video_id,
            )

            with self._stage(identity, JobStage.TRANSCODING):
                output = self.transcoder.transcode(
                    workspace.input_path, workspace.output_dir, options
                )

            with self._stage(identity, JobStage.PUBLISHING):
                return self.publisher.publish(
                    identity,
                    raw_bytes,
                    original_filename,
                    output.manifest_path,
                    output.segment_paths,
                    media_info,
                )
        finally:
            log_info(logger, "Cleaning up workspace", video_id=identity.video_id, stage=JobStage.CLEANUP.value)
            self.workspace_manager.destroy(workspace)

    def get_playlist_path(self, guest_name: str, video_id: str) -> str:
        """Proxy path of the manifest for a previously processed video."""
        identity = JobIdentity.create(guest_name, video_id)
        return paths.public_path(
            self.publisher.proxy_prefix,
            paths.manifest_key(self.publisher.namespace, identity),
        )

    def has_hls_version(self, guest_name: str, video_id: str) -> bool:
        """Check whether a video's manifest exists in storage."""
        identity = JobIdentity.create(guest_name, video_id)
        return self.publisher.storage.exists(
            paths.manifest_key(self.publisher.namespace, identity)
        )


def resolve_binary(name: str) -> str:
    """Resolve an executable through PATH, leaving unknown names unchanged."""
    return shutil.which(name) or name


def build_ingest_service(
    config: Optional[Settings] = None,
    storage: Optional[Storage] = None,
) -> VideoIngestService:
    """Wire a VideoIngestService from configuration."""
    config = config or default_settings
    return VideoIngestService(
        workspace_manager=WorkspaceManager(config.TEMP_DIR),
        prober=MediaProber(
            ffprobe_path=resolve_binary(config.FFPROBE_PATH),
            timeout_seconds=config.PROBE_TIMEOUT_SECONDS,
        ),
        transcoder=HLSTranscoder(
            ffmpeg_path=resolve_binary(config.FFMPEG_PATH),
            timeout_seconds=config.TRANSCODE_TIMEOUT_SECONDS,
            encode_settings=HLSEncodeSettings(encoder_preset=config.FFMPEG_ENCODER_PRESET),
        ),
        publisher=HLSPublisher(
            storage=storage or get_storage(),
            namespace=config.STORAGE_NAMESPACE,
            proxy_prefix=config.PROXY_PATH_PREFIX,
        ),
    )
