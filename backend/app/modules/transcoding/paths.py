"""Naming conventions shared by the transcoder and the publisher.

The ffmpeg segment filename template and the pattern used to find segment
references in the manifest are defined together here so they cannot drift.
Storage keys follow ``<namespace>/<owner_key>/<category>/<video_id>[...]``
and every client-facing path is ``<proxy_prefix>/<storage_key>``.
"""

import os
import re
from pathlib import Path
from typing import Iterable

from app.modules.transcoding.models import JobIdentity

MANIFEST_FILENAME = "index.m3u8"
SEGMENT_PREFIX = "chunk"
SEGMENT_SUFFIX = ".ts"

# ffmpeg's -hls_segment_filename template (zero-based %d counter)
SEGMENT_FILENAME_TEMPLATE = f"{SEGMENT_PREFIX}%d{SEGMENT_SUFFIX}"

# Matches a segment reference as ffmpeg writes it in the manifest
SEGMENT_NAME_PATTERN = re.compile(
    rf"(?<![\w/]){re.escape(SEGMENT_PREFIX)}(\d+){re.escape(SEGMENT_SUFFIX)}(?![\w])"
)

ORIGINALS_CATEGORY = "originals"
HLS_CATEGORY = "hls"

MANIFEST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
SEGMENT_CONTENT_TYPE = "video/mp2t"
DEFAULT_ORIGINAL_EXTENSION = ".mp4"
DEFAULT_ORIGINAL_CONTENT_TYPE = "video/mp4"


def segment_filename(index: int) -> str:
    """Name ffmpeg gives the segment with the given zero-based index."""
    return SEGMENT_FILENAME_TEMPLATE % index


def segment_index(name: str) -> int:
    """Numeric index of a segment filename.

    Raises:
        ValueError: If ``name`` does not follow the segment convention
    """
    match = SEGMENT_NAME_PATTERN.fullmatch(os.path.basename(name))
    if match is None:
        raise ValueError(f"Not a segment filename: {name}")
    return int(match.group(1))


def is_segment_filename(name: str) -> bool:
    return SEGMENT_NAME_PATTERN.fullmatch(name) is not None


def sort_segments(paths: Iterable[Path]) -> list[Path]:
    """Order segment paths by numeric index (chunk2 before chunk10)."""
    return sorted(paths, key=lambda p: segment_index(p.name))


def original_extension(original_filename: str) -> str:
    """Lowercased extension of the uploaded file, ``.mp4`` when absent."""
    ext = os.path.splitext(original_filename or "")[1].lower()
    if not ext or not re.fullmatch(r"\.[a-z0-9]{1,8}", ext):
        return DEFAULT_ORIGINAL_EXTENSION
    return ext


def original_key(namespace: str, identity: JobIdentity, extension: str) -> str:
    return f"{namespace}/{identity.owner_key}/{ORIGINALS_CATEGORY}/{identity.video_id}{extension}"


def hls_key_prefix(namespace: str, identity: JobIdentity) -> str:
    return f"{namespace}/{identity.owner_key}/{HLS_CATEGORY}/{identity.video_id}"


def manifest_key(namespace: str, identity: JobIdentity) -> str:
    return f"{hls_key_prefix(namespace, identity)}/{MANIFEST_FILENAME}"


def public_path(proxy_prefix: str, key: str) -> str:
    """Client-facing path the application proxy resolves back to ``key``.

    Always a single leading slash, so an empty prefix still yields a
    host-relative path.
    """
    parts = [part.strip("/") for part in (proxy_prefix, key)]
    return "/" + "/".join(part for part in parts if part)
