"""
The collection of labeled reference images.

The store is the consumer end of the classification queue. It keeps the
ordered collection plus a small amount of bookkeeping about jobs that are
still in flight, so a result that arrives after the user removed its entry
is dropped instead of resurrecting it.

Filtering and search are derived views computed on demand; the
collection is small enough (hundreds of stills) that indexing would only
add invalidation bugs.
"""

import logging
from typing import Iterable, Mapping, Optional

from .models import Category, ClassificationJob, ReferenceImage

logger = logging.getLogger(__name__)


class CollectionStore:
    """
    Ordered set of ReferenceImage records keyed by id.

    Mutated only through the methods below; readers get immutable
    snapshots via the images property.
    """

    def __init__(self, images: Optional[Iterable[ReferenceImage]] = None) -> None:
        self._images: list[ReferenceImage] = []
        self._pending: set[str] = set()
        self._withdrawn: set[str] = set()
        if images is not None:
            self.replace_all(images)

    # -----------------------------------------------------------------------
    # Pipeline consumption
    # -----------------------------------------------------------------------

    def on_job_created(self, job: ClassificationJob) -> None:
        """Register a job whose result will arrive later."""
        self._pending.add(job.id)

    def on_classification_complete(self, image: ReferenceImage) -> bool:
        """
        Append a freshly classified image.

        Returns False when the result is discarded because its entry was
        removed while the job was still in flight.
        """
        self._pending.discard(image.id)

        if image.id in self._withdrawn:
            self._withdrawn.discard(image.id)
            logger.debug("Discarding result for removed entry", extra={"image_id": image.id})
            return False

        if self.get(image.id) is not None:
            logger.warning("Duplicate image id ignored", extra={"image_id": image.id})
            return False

        self._images.append(image)
        return True

    def on_job_dropped(self, job_id: str) -> None:
        """A job finished without producing a record (skipped or drained)."""
        self._pending.discard(job_id)
        self._withdrawn.discard(job_id)

    # -----------------------------------------------------------------------
    # User operations
    # -----------------------------------------------------------------------

    def remove(self, image_id: str) -> bool:
        """
        Remove an image by id.

        Removing an id whose job is still pending withdraws it, so the
        late result is ignored when it arrives.
        """
        for index, image in enumerate(self._images):
            if image.id == image_id:
                del self._images[index]
                return True

        if image_id in self._pending:
            self._withdrawn.add(image_id)
            return True

        return False

    def replace_all(self, images: Iterable[ReferenceImage]) -> None:
        """
        Replace the whole collection (import).

        Validation happens before any mutation, so a rejected replacement
        leaves the collection as it was.
        """
        replacement = list(images)
        seen: set[str] = set()
        for image in replacement:
            if image.id in seen:
                raise ValueError(f"Duplicate image id: {image.id}")
            seen.add(image.id)

        self._images = replacement
        logger.info("Collection replaced", extra={"count": len(replacement)})

    # -----------------------------------------------------------------------
    # Read access
    # -----------------------------------------------------------------------

    @property
    def images(self) -> tuple[ReferenceImage, ...]:
        return tuple(self._images)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get(self, image_id: str) -> Optional[ReferenceImage]:
        for image in self._images:
            if image.id == image_id:
                return image
        return None

    def __len__(self) -> int:
        return len(self._images)

    def filter_options(self) -> dict[Category, list[str]]:
        """
        Distinct labels per category, sorted.

        Categories nobody has a label for are left out entirely.
        """
        options: dict[Category, set[str]] = {}
        for image in self._images:
            for category, value in image.classifications.items():
                options.setdefault(category, set()).add(value)

        return {
            category: sorted(options[category])
            for category in Category
            if category in options
        }

    def search(
        self,
        filters: Optional[Mapping[Category, str]] = None,
        query: str = "",
    ) -> list[ReferenceImage]:
        """
        Apply category filters, then the free-text query.

        Every filter must match exactly. A blank query matches everything.
        """
        images = list(self._images)

        if filters:
            images = [
                image for image in images
                if all(image.classifications.get(category) == value for category, value in filters.items())
            ]

        query = query.strip()
        if query:
            images = [image for image in images if image.matches(query)]

        return images
