"""
The reference collector: videos in, labeled stills out.

Wires the two queues and the collection together:

    VideoQueueController --frame--> assign job id --> ClassificationQueueController
                                         |                      |
                                         v                      v
                                  store.on_job_created   store.on_classification_complete

The two queues run concurrently with each other (a video can be sampled
while earlier frames are being classified) but each is strictly serial.
Because frames are enqueued in extraction order, results also surface in
extraction order.

A rejected credential halts the collector: sampling stops, and no frame or
video is taken in until resume() is called with a new key in place.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .classification.classifier import ImageClassifier
from .classification.queue import ClassificationQueueController
from .collection.models import ClassificationJob, ExtractedFrame, VideoSource
from .collection.store import CollectionStore
from .extraction.sampler import FrameSampler
from .extraction.video_queue import VideoQueueController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineStatus:
    """Snapshot of both queues for progress reporting."""
    current_video: Optional[str]
    videos_pending: int
    current_job_source: Optional[str]
    jobs_pending: int
    last_error: Optional[str]

    @property
    def is_extracting(self) -> bool:
        return self.current_video is not None

    @property
    def is_classifying(self) -> bool:
        return self.current_job_source is not None

    @property
    def is_busy(self) -> bool:
        return (
            self.is_extracting
            or self.is_classifying
            or self.videos_pending > 0
            or self.jobs_pending > 0
        )


class ReferenceCollector:
    """
    One collection pipeline: sampler, classifier, and the store they feed.

    This is a service object with its own state (the queues and the
    store); a process normally has exactly one.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        classifier: ImageClassifier,
        store: Optional[CollectionStore] = None,
        interval_seconds: float = 3.0,
    ) -> None:
        self.store = store if store is not None else CollectionStore()
        self.classification_queue = ClassificationQueueController(
            classifier,
            on_complete=self.store.on_classification_complete,
            on_dropped=self.store.on_job_dropped,
            on_fatal=self._on_credential_rejected,
        )
        self.video_queue = VideoQueueController(
            sampler,
            on_frame=self._on_frame,
            interval_seconds=interval_seconds,
        )
        self._rejected: Optional[Exception] = None

    def _on_frame(self, frame: ExtractedFrame) -> None:
        if self._rejected is not None:
            return
        job = ClassificationJob.from_frame(frame)
        self.store.on_job_created(job)
        self.classification_queue.enqueue([job])

    def _on_credential_rejected(self, error: Exception) -> None:
        # every further frame would fail the same way
        self._rejected = error
        self.stop_extraction()

    @property
    def is_halted(self) -> bool:
        """True after a rejected credential, until resume() is called."""
        return self._rejected is not None

    def resume(self) -> None:
        """Accept videos again, normally once a new credential is in place."""
        if self._rejected is not None:
            logger.info("Collector resumed")
        self._rejected = None

    def add_videos(self, sources: Iterable[VideoSource]) -> int:
        """Queue videos for sampling. Nothing is queued while halted."""
        if self._rejected is not None:
            logger.warning("Collector halted by a rejected credential, videos not queued")
            return 0
        return self.video_queue.enqueue(sources)

    def stop_extraction(self) -> int:
        """Cancel sampling. Frames already handed off still get classified."""
        return self.video_queue.cancel()

    def acknowledge_error(self) -> Optional[Exception]:
        """Take the surfaced fatal error, clearing it so it's reported once."""
        error = self.classification_queue.last_error
        self.classification_queue.clear_error()
        return error

    def status(self) -> PipelineStatus:
        current_video = self.video_queue.current
        current_job = self.classification_queue.current
        last_error = self.classification_queue.last_error

        return PipelineStatus(
            current_video=current_video.name if current_video else None,
            videos_pending=self.video_queue.pending_count,
            current_job_source=current_job.source_name if current_job else None,
            jobs_pending=self.classification_queue.pending_count,
            last_error=str(last_error) if last_error else None,
        )

    async def wait_idle(self) -> None:
        """Wait for both queues to run dry."""
        # classification can only gain work while extraction is running
        await self.video_queue.wait_idle()
        await self.classification_queue.wait_idle()

    async def shutdown(self) -> None:
        """Stop both workers; anything still queued or in flight is abandoned."""
        self.video_queue.cancel()
        await self.video_queue.shutdown()
        await self.classification_queue.shutdown()
