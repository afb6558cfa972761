"""
Frame extraction: the sampler and the video queue that drives it.
"""

from .sampler import (
    CapturedStill,
    DecodeSession,
    FrameSampler,
    VideoDecodeError,
    VideoDecoder,
    sample_timestamps,
)
from .video_queue import VideoQueueController

__all__ = [
    "CapturedStill",
    "DecodeSession",
    "FrameSampler",
    "VideoDecodeError",
    "VideoDecoder",
    "sample_timestamps",
    "VideoQueueController",
]
