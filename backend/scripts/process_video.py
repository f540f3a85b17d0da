"""
Process Video Script.

Runs a local video file through the HLS ingest pipeline using the storage
backend configured in the environment (.env), then prints the result.

Run: python scripts/process_video.py path/to/clip.mov --guest "Jane Doe"
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import set_app_info
from app.core.tracing import setup_tracing, shutdown_tracing
from app.modules.transcoding.errors import TranscodingError
from app.modules.transcoding.models import QualityTier
from app.modules.transcoding.schemas import ProcessingOptions
from app.modules.transcoding.service import build_ingest_service


def main() -> int:
    parser = argparse.ArgumentParser(description="Transcode a video to HLS and publish it")
    parser.add_argument("input", type=Path, help="Video file to process")
    parser.add_argument("--guest", required=True, help="Guest display name")
    parser.add_argument("--video-id", default=None, help="Video ID (generated when omitted)")
    parser.add_argument(
        "--quality",
        choices=[tier.value for tier in QualityTier],
        default=QualityTier.MEDIUM.value,
    )
    parser.add_argument("--segment-duration", type=int, default=6)
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    setup_tracing(
        settings.PROJECT_NAME,
        settings.VERSION,
        environment=settings.ENVIRONMENT,
        otlp_endpoint=settings.OTLP_ENDPOINT,
        enable_console_export=settings.TRACING_CONSOLE_EXPORT,
    )
    set_app_info(settings.VERSION, settings.ENVIRONMENT)

    options = ProcessingOptions(
        guest_name=args.guest,
        video_id=args.video_id,
        quality=QualityTier(args.quality),
        segment_duration_seconds=args.segment_duration,
    )

    service = build_ingest_service()
    try:
        result = service.process(args.input.read_bytes(), args.input.name, options)
    except TranscodingError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    finally:
        shutdown_tracing()

    print(json.dumps(result.model_dump(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
