"""Application modules.

- transcoding: HLS ingest pipeline for uploaded videos
"""
