"""
The classification queue: one classifier call at a time, strictly FIFO.

Per job outcome:
- labels returned: build a ReferenceImage with the job's id and emit it
- nothing returned (or every label absent): drop the job silently
- credential error: remember it in last_error, drop the entire backlog,
  stop. One bad key fails every call identically, so we surface one
  error instead of N.
- any other error: log it and skip just this job

There is deliberately no user-facing cancel here; draining on a fatal
error is the only way the backlog is cut short.
"""

import logging
from typing import Callable, Iterable, Optional

from ..collection.models import ClassificationJob, ReferenceImage
from ..queueing import Channel, SerialQueue
from .classifier import ImageClassifier, is_credential_error

logger = logging.getLogger(__name__)


class ClassificationQueueController(SerialQueue[ClassificationJob]):
    """
    Serial driver for the external classifier.

    Completed images go out on one channel; ids of jobs that produced
    nothing go out on another, so the consumer can forget them. A rejected
    credential is reported on a third, after the backlog is gone.
    """

    def __init__(
        self,
        classifier: ImageClassifier,
        on_complete: Optional[Callable[[ReferenceImage], None]] = None,
        on_dropped: Optional[Callable[[str], None]] = None,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        super().__init__("classification-queue")
        self._classifier = classifier
        self._completed: Channel[ReferenceImage] = Channel(on_complete)
        self._dropped: Channel[str] = Channel(on_dropped)
        self._fatal: Channel[Exception] = Channel(on_fatal)
        self.last_error: Optional[Exception] = None
        self.processed_count = 0
        self.skipped_count = 0

    def enqueue(self, jobs: Iterable[ClassificationJob]) -> int:
        """Append jobs to the backlog and clear any previous fatal error."""
        jobs = list(jobs)
        if jobs:
            self.last_error = None
        return self._submit(jobs)

    def clear_error(self) -> None:
        self.last_error = None

    async def _process(self, job: ClassificationJob) -> None:
        try:
            classifications = await self._classifier.classify(job.image_data)
        except Exception as e:
            if is_credential_error(e):
                self._fail(job, e)
            else:
                logger.warning(
                    "Classification failed, skipping frame",
                    extra={"job_id": job.id, "source": job.source_name, "error": str(e)},
                )
                self._skip(job)
            return

        if classifications is None or classifications.is_empty:
            logger.info("Classifier returned no labels", extra={"job_id": job.id})
            self._skip(job)
            return

        self._completed.emit(ReferenceImage.from_job(job, classifications))
        self.processed_count += 1

    def _skip(self, job: ClassificationJob) -> None:
        self.skipped_count += 1
        self._dropped.emit(job.id)

    def _fail(self, job: ClassificationJob, error: Exception) -> None:
        drained = self._drain()
        self.last_error = error

        logger.error(
            "Classifier rejected credential, discarding queued frames",
            extra={"job_id": job.id, "discarded": len(drained) + 1, "error": str(error)},
        )

        for dropped in [job, *drained]:
            self._skip(dropped)

        self._fatal.emit(error)
