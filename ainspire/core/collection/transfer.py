"""
Import and export of the collection.

The file format is a JSON array of records:

    [{"id": "...", "src": "data:image/jpeg;base64,...",
      "classifications": {"composition": "Close-Up"},
      "timestampSeconds": 12.5, "sourceName": "trailer.mp4"}]

Import is all-or-nothing: any invalid element rejects the whole file and
the caller's collection is never touched. Older exports used "timestamp"
instead of "timestampSeconds"; both are accepted on the way in.
"""

import io
import json
import logging
import zipfile
from typing import Any, Iterable, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Classification, ReferenceImage, decode_data_url

logger = logging.getLogger(__name__)


class CollectionImportError(Exception):
    """
    Raised when an import file is rejected.

    reason is "parse" when the file isn't JSON at all and "invalid" when
    it parses but doesn't have the expected shape.
    """

    def __init__(self, message: str, reason: str = "invalid") -> None:
        super().__init__(message)
        self.reason = reason


class CollectionExportError(Exception):
    """Raised when there is nothing to export."""
    pass


class ReferenceImageRecord(BaseModel):
    """Wire shape of one exported image."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    src: str
    classifications: dict[str, Any]
    timestamp_seconds: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("timestampSeconds", "timestamp"),
        serialization_alias="timestampSeconds",
    )
    source_name: str = Field(
        default="",
        validation_alias=AliasChoices("sourceName", "source_name"),
        serialization_alias="sourceName",
    )

    @field_validator("src")
    @classmethod
    def _src_is_data_url(cls, value: str) -> str:
        decode_data_url(value)
        return value

    @classmethod
    def from_image(cls, image: ReferenceImage) -> "ReferenceImageRecord":
        return cls(
            id=image.id,
            src=image.src,
            classifications=image.classifications.to_dict(),
            timestamp_seconds=image.timestamp_seconds,
            source_name=image.source_name,
        )

    def to_image(self) -> ReferenceImage:
        media_type, data = decode_data_url(self.src)
        return ReferenceImage(
            id=self.id,
            image_data=data,
            classifications=Classification.from_mapping(self.classifications),
            timestamp_seconds=self.timestamp_seconds,
            source_name=self.source_name,
            media_type=media_type,
        )


def export_collection(images: Iterable[ReferenceImage]) -> str:
    """Serialize the full collection to the JSON file format."""
    records = [
        ReferenceImageRecord.from_image(image).model_dump(by_alias=True)
        for image in images
    ]
    return json.dumps(records, indent=2, ensure_ascii=False)


def import_collection(text: str) -> list[ReferenceImage]:
    """
    Parse and validate an exported collection.

    Raises CollectionImportError without returning anything partial.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise CollectionImportError(f"File is not valid JSON: {e}", reason="parse")

    if not isinstance(payload, list):
        raise CollectionImportError("Collection file must contain a JSON array")

    images: list[ReferenceImage] = []
    seen: set[str] = set()

    for index, element in enumerate(payload):
        if not isinstance(element, dict):
            raise CollectionImportError(f"Element {index} is not an object")

        missing = [key for key in ("id", "src", "classifications") if key not in element]
        if missing:
            raise CollectionImportError(
                f"Element {index} is missing required fields: {', '.join(missing)}"
            )

        try:
            record = ReferenceImageRecord.model_validate(element)
        except ValidationError as e:
            raise CollectionImportError(f"Element {index} is invalid: {e.errors()[0]['msg']}")

        if record.id in seen:
            raise CollectionImportError(f"Duplicate id in file: {record.id}")
        seen.add(record.id)

        images.append(record.to_image())

    logger.info("Collection file parsed", extra={"count": len(images)})
    return images


def build_image_archive(images: Iterable[ReferenceImage]) -> bytes:
    """
    Zip every still under its download filename.

    Names that collide (same source and timestamp) get a numeric suffix.
    """
    images = list(images)
    if not images:
        raise CollectionExportError("There are no images to download")

    buffer = io.BytesIO()
    used: set[str] = set()

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for image in images:
            name = _unique_name(image.download_filename, used)
            used.add(name)
            archive.writestr(name, image.image_data)

    logger.info("Image archive built", extra={"count": len(images), "size_bytes": buffer.tell()})
    return buffer.getvalue()


def _unique_name(name: str, used: set[str]) -> str:
    if name not in used:
        return name

    stem, dot, extension = name.rpartition(".")
    counter = 1
    candidate: Optional[str] = None
    while candidate is None or candidate in used:
        candidate = f"{stem}-{counter}{dot}{extension}"
        counter += 1
    return candidate
