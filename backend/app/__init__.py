"""Video Ingest Pipeline.

Turns uploaded videos into fast-start HLS streams and publishes the
original plus every segment to object storage behind application proxy
paths.

Modules:
    - core: Configuration, logging, tracing, metrics, storage
    - modules.transcoding: Workspace, probe, transcode, publish, orchestration
"""

__version__ = "0.1.0"
