"""
Collection endpoints: browse, filter, remove, import and export.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.collection.models import Category, ReferenceImage
from ...core.collection.transfer import (
    CollectionExportError,
    CollectionImportError,
    build_image_archive,
    export_collection,
    import_collection,
)
from ..dependencies import CollectorDep, TranslatorDep

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_FILENAME = "ainspire-collection.json"
ARCHIVE_FILENAME = "ainspire-images.zip"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ImageResponse(BaseModel):
    """One collection entry as shown in the gallery."""
    id: str
    src: str = Field(description="Image as a base64 data URL")
    classifications: dict[str, str]
    timestamp_seconds: float
    source_name: str

    @classmethod
    def from_image(cls, image: ReferenceImage) -> "ImageResponse":
        return cls(
            id=image.id,
            src=image.src,
            classifications=image.classifications.to_dict(),
            timestamp_seconds=image.timestamp_seconds,
            source_name=image.source_name,
        )


class ImageListResponse(BaseModel):
    images: list[ImageResponse]
    total: int = Field(description="Size of the whole collection, before filtering")


class FilterOption(BaseModel):
    category: str
    label: str = Field(description="Localized category name")
    values: list[str]


class ImportResponse(BaseModel):
    imported: int


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=ImageListResponse, summary="List images with filters and search")
async def list_images(
    collector: CollectorDep,
    q: Annotated[str, Query(description="Free-text search over source name and labels")] = "",
    composition: Optional[str] = None,
    action: Optional[str] = None,
    lighting: Optional[str] = None,
    color: Optional[str] = None,
    setting: Optional[str] = None,
) -> ImageListResponse:
    requested = {
        Category.COMPOSITION: composition,
        Category.ACTION: action,
        Category.LIGHTING: lighting,
        Category.COLOR: color,
        Category.SETTING: setting,
    }
    filters = {category: value for category, value in requested.items() if value}

    images = collector.store.search(filters, q)
    return ImageListResponse(
        images=[ImageResponse.from_image(image) for image in images],
        total=len(collector.store),
    )


@router.get("/filters", response_model=list[FilterOption], summary="Available filter values")
async def list_filters(collector: CollectorDep, translator: TranslatorDep) -> list[FilterOption]:
    return [
        FilterOption(
            category=category.value,
            label=translator.t(f"categories.{category.value}"),
            values=values,
        )
        for category, values in collector.store.filter_options().items()
    ]


@router.get("/export", summary="Download the collection as JSON")
async def export_images(collector: CollectorDep) -> Response:
    return Response(
        content=export_collection(collector.store.images),
        media_type="application/json",
        headers=_attachment(EXPORT_FILENAME),
    )


@router.post("/import", response_model=ImportResponse, summary="Replace the collection from a JSON export")
async def import_images(
    file: Annotated[UploadFile, File(description="A collection exported from /export")],
    collector: CollectorDep,
    translator: TranslatorDep,
) -> ImportResponse:
    """
    Replace the whole collection. Nothing changes if the file is rejected.
    """
    raw = await file.read()
    try:
        images = import_collection(raw.decode("utf-8"))
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=translator.t("alerts.jsonParseError"),
        )
    except CollectionImportError as e:
        logger.warning("Import rejected", extra={"reason": e.reason, "error": str(e)})
        key = "alerts.jsonParseError" if e.reason == "parse" else "alerts.invalidJson"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=translator.t(key))

    collector.store.replace_all(images)
    return ImportResponse(imported=len(images))


@router.get("/archive", summary="Download every image as a zip")
async def download_archive(collector: CollectorDep, translator: TranslatorDep) -> Response:
    try:
        archive = build_image_archive(collector.store.images)
    except CollectionExportError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=translator.t("alerts.noImagesToDownload"),
        )

    return Response(
        content=archive,
        media_type="application/zip",
        headers=_attachment(ARCHIVE_FILENAME),
    )


@router.get("/{image_id}", summary="Download one image")
async def download_image(image_id: str, collector: CollectorDep) -> Response:
    image = collector.store.get(image_id)
    if image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")

    return Response(
        content=image.image_data,
        media_type=image.media_type,
        headers=_attachment(image.download_filename),
    )


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove an image")
async def remove_image(image_id: str, collector: CollectorDep) -> Response:
    if not collector.store.remove(image_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
