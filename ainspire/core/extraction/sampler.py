"""
Frame sampling: turn one video into a sequence of timestamped stills.

The sampler does point-sampling at a fixed interval. It starts at t=0,
captures, advances by the interval, and keeps going while the next target
is still inside the video:

    duration=12, interval=5  ->  captures at 0, 5, 10
    duration=10, interval=5  ->  captures at 0, 5      (10 is not < 10)

The first frame is always attempted, so a video whose duration can't be
determined still yields its opening frame.

Decoding is behind the VideoDecoder protocol. The sampler only knows how
to walk timestamps, honour cancellation, and guarantee the decode session
is closed exactly once.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from ..collection.models import ExtractedFrame, VideoSource

logger = logging.getLogger(__name__)


class VideoDecodeError(Exception):
    """Raised when a video can't be loaded or a frame can't be decoded."""
    pass


@dataclass(frozen=True)
class CapturedStill:
    """A compressed still and the position the decoder actually reached."""
    image_data: bytes = field(repr=False)
    timestamp_seconds: float


class DecodeSession(Protocol):
    """
    An open, seekable video.

    Holds whatever backing resources the decoder needs (temp files,
    buffers). close() must release them and is called exactly once.
    """

    @property
    def duration_seconds(self) -> float:
        ...

    async def capture(self, timestamp_seconds: float) -> CapturedStill:
        """Seek to the timestamp and capture a JPEG still."""
        ...

    async def close(self) -> None:
        ...


class VideoDecoder(Protocol):
    """Opens video sources for sampling."""

    async def open(self, source: VideoSource) -> DecodeSession:
        """Load the video and read its duration. Raises VideoDecodeError."""
        ...


def sample_timestamps(duration_seconds: float, interval_seconds: float) -> list[float]:
    """
    Seek targets for a video: every k*interval below duration, from k=0.

    Targets are computed as multiples rather than by repeated addition so
    long videos don't accumulate float drift.
    """
    if interval_seconds <= 0:
        raise ValueError("Sampling interval must be positive")

    timestamps = [0.0]
    k = 1
    while k * interval_seconds < duration_seconds:
        timestamps.append(k * interval_seconds)
        k += 1
    return timestamps


FrameCallback = Callable[[ExtractedFrame], None]


class FrameSampler:
    """
    Samples stills from one video at a time.

    Stateless between calls; each extract() opens its own decode session.
    """

    def __init__(self, decoder: VideoDecoder) -> None:
        self._decoder = decoder

    async def extract(
        self,
        source: VideoSource,
        interval_seconds: float,
        on_frame: FrameCallback,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Capture stills from the video and hand each one to on_frame.

        Decode failures end extraction early without raising: frames
        already delivered stay delivered. Once cancel_event is set no
        further seek is started, a capture in progress is abandoned, and
        on_frame is not called again.

        Returns the number of frames delivered.
        """
        if interval_seconds <= 0:
            raise ValueError("Sampling interval must be positive")

        cancel_event = cancel_event or asyncio.Event()
        delivered = 0

        try:
            session = await self._decoder.open(source)
        except VideoDecodeError as e:
            logger.warning(
                "Could not load video",
                extra={"video_name": source.name, "error": str(e)},
            )
            return 0

        try:
            duration = session.duration_seconds
            targets = sample_timestamps(duration, interval_seconds)

            logger.info(
                "Sampling video",
                extra={
                    "video_name": source.name,
                    "duration": duration,
                    "interval": interval_seconds,
                    "frame_count": len(targets),
                },
            )

            for target in targets:
                if cancel_event.is_set():
                    break

                still = await _capture_unless_cancelled(session, target, cancel_event)

                # cancellation may have landed while the decoder was busy
                if still is None or cancel_event.is_set():
                    break

                on_frame(ExtractedFrame(
                    image_data=still.image_data,
                    timestamp_seconds=max(0.0, still.timestamp_seconds),
                    source_name=source.name,
                ))
                delivered += 1

        except VideoDecodeError as e:
            logger.warning(
                "Decoding stopped early",
                extra={"video_name": source.name, "delivered": delivered, "error": str(e)},
            )
        finally:
            await session.close()

        if cancel_event.is_set():
            logger.info("Sampling cancelled", extra={"video_name": source.name, "delivered": delivered})

        return delivered


async def _capture_unless_cancelled(
    session: DecodeSession,
    timestamp_seconds: float,
    cancel_event: asyncio.Event,
) -> Optional[CapturedStill]:
    """
    Run one capture, abandoning it if cancel_event fires first.

    Returns None when cancelled. Decoder errors propagate.
    """
    capture = asyncio.ensure_future(session.capture(timestamp_seconds))
    cancelled = asyncio.ensure_future(cancel_event.wait())

    try:
        await asyncio.wait({capture, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not capture.done():
            capture.cancel()
            await asyncio.gather(capture, return_exceptions=True)

    if capture.cancelled():
        return None
    return capture.result()
