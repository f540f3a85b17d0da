"""Manifest rewriting and artifact upload.

Segments are uploaded before the manifest, and the manifest that reaches
storage is the rewritten one whose segment references are proxy paths.
Objects uploaded before a failure are left in place.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Sequence

from app.core.metrics import record_upload
from app.core.storage import Storage
from app.modules.transcoding import paths
from app.modules.transcoding.errors import PublishError
from app.modules.transcoding.models import Artifact, ArtifactKind, JobIdentity, MediaInfo
from app.modules.transcoding.schemas import ProcessingResult

logger = logging.getLogger(__name__)


def rewrite_manifest(content: str, hls_prefix: str, proxy_prefix: str) -> str:
    """Point every segment reference in an HLS manifest at the proxy.

    ``chunk3.ts`` becomes ``/<proxy_prefix>/<hls_prefix>/chunk3.ts``.
    References that are already absolute are left unchanged.
    """
    base = paths.public_path(proxy_prefix, hls_prefix)
    return paths.SEGMENT_NAME_PATTERN.sub(lambda m: f"{base}/{m.group(0)}", content)


class HLSPublisher:
    """Uploads a job's original, segments and rewritten manifest."""

    def __init__(
        self,
        storage: Storage,
        namespace: str = "wedding",
        proxy_prefix: str = "/api/s3-proxy",
    ):
        self.storage = storage
        self.namespace = namespace.strip("/")
        self.proxy_prefix = proxy_prefix

    def _put(self, artifact: Artifact, key: str) -> None:
        try:
            result = self.storage.upload_bytes(artifact.content, key, artifact.content_type)
        except Exception as e:
            record_upload(artifact.kind.value, success=False)
            raise PublishError(f"Upload of {key} failed: {e}", key=key) from e

        record_upload(artifact.kind.value, success=result.success)
        if not result.success:
            raise PublishError(
                f"Upload of {key} failed: {result.error_message or 'unknown error'}",
                key=key,
            )

    def original_artifact(self, original_bytes: bytes, original_filename: str) -> Artifact:
        content_type, _ = mimetypes.guess_type(original_filename or "")
        if not content_type or not content_type.startswith("video/"):
            content_type = paths.DEFAULT_ORIGINAL_CONTENT_TYPE
        return Artifact(
            kind=ArtifactKind.ORIGINAL,
            relative_name=original_filename,
            content=original_bytes,
            content_type=content_type,
        )

    def publish(
        self,
        identity: JobIdentity,
        original_bytes: bytes,
        original_filename: str,
        manifest_path: Path,
        segment_paths: Sequence[Path],
        media_info: MediaInfo,
    ) -> ProcessingResult:
        """Upload every artifact of a job and describe the result.

        Args:
            identity: Job identity used to namespace keys
            original_bytes: The uploaded file as received
            original_filename: Name the file was uploaded with
            manifest_path: Manifest produced by the transcoder
            segment_paths: Segments in playback order
            media_info: Probe result, for the reported duration

        Returns:
            ProcessingResult describing the published objects

        Raises:
            PublishError: If any upload fails
        """
        original_key = paths.original_key(
            self.namespace, identity, paths.original_extension(original_filename)
        )
        self._put(self.original_artifact(original_bytes, original_filename), original_key)
        logger.info("Uploaded original video", extra={"key": original_key})

        hls_prefix = paths.hls_key_prefix(self.namespace, identity)
        segment_public_paths = []
        for segment_path in segment_paths:
            key = f"{hls_prefix}/{segment_path.name}"
            try:
                content = Path(segment_path).read_bytes()
            except OSError as e:
                raise PublishError(f"Could not read segment {segment_path.name}: {e}", key=key) from e
            self._put(
                Artifact(
                    kind=ArtifactKind.SEGMENT,
                    relative_name=segment_path.name,
                    content=content,
                    content_type=paths.SEGMENT_CONTENT_TYPE,
                ),
                key,
            )
            segment_public_paths.append(paths.public_path(self.proxy_prefix, key))

        logger.info(
            "Uploaded HLS segments",
            extra={"segment_count": len(segment_public_paths), "hls_prefix": hls_prefix},
        )

        manifest_key = paths.manifest_key(self.namespace, identity)
        try:
            manifest_text = Path(manifest_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PublishError(f"Could not read manifest: {e}", key=manifest_key) from e

        rewritten = rewrite_manifest(manifest_text, hls_prefix, self.proxy_prefix)
        self._put(
            Artifact(
                kind=ArtifactKind.MANIFEST,
                relative_name=paths.MANIFEST_FILENAME,
                content=rewritten.encode("utf-8"),
                content_type=paths.MANIFEST_CONTENT_TYPE,
            ),
            manifest_key,
        )
        manifest_public_path = paths.public_path(self.proxy_prefix, manifest_key)
        logger.info("Uploaded rewritten manifest", extra={"manifest_path": manifest_public_path})

        return ProcessingResult(
            video_id=identity.video_id,
            original_storage_key=original_key,
            manifest_storage_key_prefix=hls_prefix,
            manifest_public_path=manifest_public_path,
            segment_public_paths=segment_public_paths,
            duration_seconds=media_info.duration_seconds,
        )
