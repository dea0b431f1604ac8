"""
Recording Module

Collects the audio fragments streamed by the browser recorder, assembles them
in arrival order and converts the result with ffmpeg.
"""

from .chunk_store import ChunkStore, assemble
from .transcoder import FfmpegTranscoder

__all__ = ["ChunkStore", "assemble", "FfmpegTranscoder"]
