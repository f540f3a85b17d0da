"""Prometheus metrics for the ingest pipeline.

Tracks job outcomes, per-stage latency, uploads and external tool timeouts.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
)
import time
from contextlib import contextmanager
from typing import Iterator

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "video_ingest_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Job Metrics
# ============================================
JOBS_TOTAL = Counter(
    "video_ingest_jobs_total",
    "Total ingest jobs by final status",
    ["status"],
    registry=REGISTRY,
)

STAGE_DURATION_SECONDS = Histogram(
    "video_ingest_stage_duration_seconds",
    "Duration of each pipeline stage in seconds",
    ["stage"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=REGISTRY,
)


# ============================================
# Storage / External Tool Metrics
# ============================================
UPLOADS_TOTAL = Counter(
    "video_ingest_uploads_total",
    "Object store uploads by artifact category and outcome",
    ["category", "status"],
    registry=REGISTRY,
)

PROCESS_TIMEOUTS_TOTAL = Counter(
    "video_ingest_process_timeouts_total",
    "External tool invocations killed after exceeding their budget",
    ["tool"],
    registry=REGISTRY,
)


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def record_job(status: str) -> None:
    """Record a finished job (``done`` or ``failed``)."""
    JOBS_TOTAL.labels(status=status).inc()


def record_upload(category: str, success: bool) -> None:
    """Record a single object store upload."""
    UPLOADS_TOTAL.labels(
        category=category,
        status="success" if success else "failure",
    ).inc()


def record_process_timeout(tool: str) -> None:
    """Record an external tool that had to be killed."""
    PROCESS_TIMEOUTS_TOTAL.labels(tool=tool).inc()


@contextmanager
def track_stage(stage: str) -> Iterator[None]:
    """Observe the wall-clock duration of a pipeline stage.

    The duration is recorded whether the stage succeeds or raises.
    """
    start = time.monotonic()
    try:
        yield
    finally:
        STAGE_DURATION_SECONDS.labels(stage=stage).observe(time.monotonic() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
