"""Transcoding module for video ingest.

Probes an uploaded video with ffprobe, segments it into a VOD HLS stream
with ffmpeg, and publishes the original, the segments and a rewritten
manifest to object storage.
"""
