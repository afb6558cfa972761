"""
Video decoding infrastructure.

Implements the VideoDecoder protocol from core.extraction with FFmpeg:
- Duration probing
- Seek-and-capture of single JPEG stills
- A mock decoder for running without FFmpeg
"""

from .decoder import (
    FFmpegVideoDecoder,
    MockVideoDecoder,
    create_video_decoder,
)

__all__ = [
    "FFmpegVideoDecoder",
    "MockVideoDecoder",
    "create_video_decoder",
]
