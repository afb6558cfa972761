"""
Domain models for reference collection.

These models represent the core concepts of the pipeline: a video handed
in by the user, a still frame sampled from it, the classification job that
carries the frame to the classifier, and the labeled reference image that
ends up in the collection.

They have no dependencies on external frameworks. Everything here is a
value: frozen dataclasses that can be passed between queues without
anyone mutating them behind the owner's back.
"""

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional
from uuid import uuid4


class Category(Enum):
    """
    The fixed set of label categories the classifier fills in.

    Declaration order is the display order used for filter options.
    """
    COMPOSITION = "composition"
    ACTION = "action"
    LIGHTING = "lighting"
    COLOR = "color"
    SETTING = "setting"


@dataclass(frozen=True)
class Classification:
    """
    Labels for one image, one optional short label per category.

    None means "not applicable" - never an empty string. External JSON is
    validated through from_mapping rather than trusted as-is.
    """
    composition: Optional[str] = None
    action: Optional[str] = None
    lighting: Optional[str] = None
    color: Optional[str] = None
    setting: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "Classification":
        """
        Build a Classification from loosely-typed JSON.

        Unknown keys are ignored. Non-string or blank values count as
        absent. Labels are stripped of surrounding whitespace.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Classification must be a JSON object")

        labels: dict[str, str] = {}
        for category in Category:
            value = data.get(category.value)
            if isinstance(value, str) and value.strip():
                labels[category.value] = value.strip()

        return cls(**labels)

    def get(self, category: Category) -> Optional[str]:
        return getattr(self, category.value)

    def items(self) -> Iterator[tuple[Category, str]]:
        """Populated categories in display order."""
        for category in Category:
            value = self.get(category)
            if value is not None:
                yield category, value

    def to_dict(self) -> dict[str, str]:
        return {category.value: value for category, value in self.items()}

    @property
    def is_empty(self) -> bool:
        return not any(True for _ in self.items())


@dataclass(frozen=True)
class VideoSource:
    """
    A user-selected video, as handed to the video queue.

    Immutable once enqueued. The raw bytes are only turned into a
    decodable resource by the decoder while the video is being sampled.
    """
    name: str
    data: bytes = field(repr=False)
    content_type: str = "video/mp4"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ExtractedFrame:
    """
    A still frame captured by the sampler.

    timestamp_seconds is the position the decoder actually landed on,
    which may differ slightly from the requested seek target.
    """
    image_data: bytes = field(repr=False)
    timestamp_seconds: float
    source_name: str

    def __post_init__(self) -> None:
        if self.timestamp_seconds < 0:
            raise ValueError("Frame timestamp cannot be negative")

    @property
    def timestamp_formatted(self) -> str:
        """Human-readable timestamp: MM:SS.ms"""
        minutes = int(self.timestamp_seconds // 60)
        seconds = self.timestamp_seconds % 60
        return f"{minutes:02d}:{seconds:05.2f}"


def new_job_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class ClassificationJob:
    """
    One frame waiting for classification.

    The id is assigned when the frame is handed off and is the join key
    for the resulting ReferenceImage. It never changes and is never reused.
    """
    id: str
    image_data: bytes = field(repr=False)
    timestamp_seconds: float
    source_name: str

    @classmethod
    def from_frame(cls, frame: ExtractedFrame) -> "ClassificationJob":
        return cls(
            id=new_job_id(),
            image_data=frame.image_data,
            timestamp_seconds=frame.timestamp_seconds,
            source_name=frame.source_name,
        )


_DATA_URL_PATTERN = re.compile(r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def decode_data_url(src: str) -> tuple[str, bytes]:
    """
    Split a base64 data URL into (media_type, bytes).

    Raises ValueError for anything that isn't a base64 data URL.
    """
    match = _DATA_URL_PATTERN.match(src)
    if not match:
        raise ValueError("Image source must be a base64 data URL")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except ValueError as e:
        raise ValueError(f"Image data is not valid base64: {e}")
    return match.group("media_type"), data


@dataclass(frozen=True)
class ReferenceImage:
    """
    A labeled still in the collection.

    Created only by a successful classification or by import. Its id is
    the originating job id.
    """
    id: str
    image_data: bytes = field(repr=False)
    classifications: Classification
    timestamp_seconds: float
    source_name: str
    media_type: str = "image/jpeg"

    @classmethod
    def from_job(cls, job: ClassificationJob, classifications: Classification) -> "ReferenceImage":
        return cls(
            id=job.id,
            image_data=job.image_data,
            classifications=classifications,
            timestamp_seconds=job.timestamp_seconds,
            source_name=job.source_name,
        )

    @property
    def src(self) -> str:
        """The image as an embeddable base64 data URL."""
        encoded = base64.b64encode(self.image_data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    @property
    def download_filename(self) -> str:
        """
        Filename for saving the still, e.g. "Heat-12_50.jpg".

        Source extension is dropped; the timestamp keeps two decimals with
        the dot replaced so the name stays filesystem-friendly.
        """
        stem = re.sub(r"\.[^/.]+$", "", self.source_name) or "frame"
        timestamp = f"{self.timestamp_seconds:.2f}".replace(".", "_")
        return f"{stem}-{timestamp}.jpg"

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on source name and labels."""
        needle = query.lower()
        if needle in self.source_name.lower():
            return True
        return any(needle in value.lower() for _, value in self.classifications.items())
