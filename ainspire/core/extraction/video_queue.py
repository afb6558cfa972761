"""
The video queue: feeds videos through the sampler one at a time.

Idle -> Processing(video) -> Idle, per backlog entry. A video that fails
to decode simply yields whatever frames it yielded and the queue moves on.

cancel() is an operator-level stop: it halts the video in flight and
throws away the whole backlog, not just the current item.
"""

import asyncio
import logging
from typing import Iterable, Optional

from ..collection.models import ExtractedFrame, VideoSource
from ..queueing import Channel, SerialQueue
from .sampler import FrameCallback, FrameSampler

logger = logging.getLogger(__name__)


class VideoQueueController(SerialQueue[VideoSource]):
    """
    Serial driver for the FrameSampler.

    Extracted frames go out through a single channel whose consumer is
    fixed at construction.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        on_frame: Optional[FrameCallback] = None,
        interval_seconds: float = 3.0,
    ) -> None:
        super().__init__("video-queue")
        self._sampler = sampler
        self._frames: Channel[ExtractedFrame] = Channel(on_frame)
        self._cancel_event: Optional[asyncio.Event] = None
        self.interval_seconds = interval_seconds

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @interval_seconds.setter
    def interval_seconds(self, value: float) -> None:
        """Takes effect for videos started after the change."""
        if value <= 0:
            raise ValueError("Sampling interval must be positive")
        self._interval_seconds = float(value)

    def enqueue(self, sources: Iterable[VideoSource]) -> int:
        """Append videos to the backlog; starts processing if idle."""
        added = self._submit(sources)
        if added:
            logger.info(
                "Videos queued",
                extra={"added": added, "pending": self.pending_count},
            )
        return added

    def cancel(self) -> int:
        """
        Stop the video in flight and drop the whole backlog.

        Safe to call in any state, any number of times. No frame is
        emitted after this returns. Returns how many queued videos were
        dropped.
        """
        if self._cancel_event is not None:
            self._cancel_event.set()

        dropped = self._drain()
        was_processing = self._current is not None
        self._current = None

        if was_processing or dropped:
            logger.info(
                "Video processing cancelled",
                extra={"dropped": len(dropped), "was_processing": was_processing},
            )
        return len(dropped)

    async def _process(self, source: VideoSource) -> None:
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event

        def deliver(frame: ExtractedFrame) -> None:
            if not cancel_event.is_set():
                self._frames.emit(frame)

        try:
            delivered = await self._sampler.extract(
                source,
                self._interval_seconds,
                deliver,
                cancel_event,
            )
        finally:
            if self._cancel_event is cancel_event:
                self._cancel_event = None

        logger.info(
            "Video finished",
            extra={
                "video_name": source.name,
                "frames": delivered,
                "cancelled": cancel_event.is_set(),
                "pending": self.pending_count,
            },
        )
