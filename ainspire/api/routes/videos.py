"""
Video intake and pipeline status endpoints.

Uploads are queued and processed in the background; the response comes
back as soon as the videos are in the backlog. Clients poll /status for
progress, the same way the gallery shows a status line while either
queue is busy.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ...core.collection.models import VideoSource
from ...core.i18n import describe_status
from ..dependencies import CollectorDep, ServicesDep, TranslatorDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoEnqueueResponse(BaseModel):
    """Response after queueing videos for extraction."""
    accepted: list[str] = Field(description="Names of videos added to the backlog")
    ignored: list[str] = Field(description="Uploaded files that are not videos")
    interval_seconds: float = Field(description="Sampling interval in effect")
    videos_pending: int = Field(description="Videos waiting behind the current one")


class CancelResponse(BaseModel):
    dropped: int = Field(description="Queued videos discarded")


class PipelineStatusResponse(BaseModel):
    """Progress of both queues."""
    current_video: Optional[str] = None
    videos_pending: int
    current_frame_source: Optional[str] = None
    frames_pending: int
    is_busy: bool
    image_count: int
    interval_seconds: float
    message: Optional[str] = Field(default=None, description="Localized progress line")
    alert: Optional[str] = Field(default=None, description="Localized alert for a fatal classifier error")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/videos",
    response_model=VideoEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue videos for frame extraction",
)
async def enqueue_videos(
    files: Annotated[list[UploadFile], File(description="Video files (any format FFmpeg reads)")],
    services: ServicesDep,
    translator: TranslatorDep,
    interval_seconds: Annotated[Optional[float], Form(gt=0)] = None,
) -> VideoEnqueueResponse:
    """
    Add videos to the extraction backlog.

    Non-video files are skipped. The interval, when given, is clamped to
    the configured range and applies to videos started from now on.
    """
    if not services.has_credential:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=translator.t("alerts.missingApiKey"),
        )
    if services.collector.is_halted:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=translator.t("alerts.invalidApiKey"),
        )

    max_size_bytes = services.settings.max_upload_size_mb * 1024 * 1024
    sources: list[VideoSource] = []
    ignored: list[str] = []

    for upload in files:
        name = upload.filename or "video"
        if not (upload.content_type or "").startswith("video/"):
            ignored.append(name)
            continue

        data = await upload.read()
        if len(data) > max_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"{name} is too large. Maximum size: {services.settings.max_upload_size_mb}MB"
            )
        sources.append(VideoSource(name=name, data=data, content_type=upload.content_type))

    if not sources:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No video files in upload",
        )

    video_queue = services.collector.video_queue
    if interval_seconds is not None:
        video_queue.interval_seconds = services.settings.clamp_interval(interval_seconds)

    services.collector.add_videos(sources)

    logger.info(
        "Videos accepted",
        extra={
            "videos": [source.name for source in sources],
            "ignored": ignored,
            "interval": video_queue.interval_seconds,
        },
    )

    return VideoEnqueueResponse(
        accepted=[source.name for source in sources],
        ignored=ignored,
        interval_seconds=video_queue.interval_seconds,
        videos_pending=video_queue.pending_count,
    )


@router.post(
    "/videos/cancel",
    response_model=CancelResponse,
    summary="Stop extraction and clear the video backlog",
)
async def cancel_videos(collector: CollectorDep) -> CancelResponse:
    """Frames already extracted still get classified."""
    return CancelResponse(dropped=collector.stop_extraction())


@router.get(
    "/status",
    response_model=PipelineStatusResponse,
    summary="Progress of extraction and classification",
)
async def get_status(services: ServicesDep, translator: TranslatorDep) -> PipelineStatusResponse:
    """
    Snapshot of both queues.

    A credential failure is reported here once, as a localized alert,
    and the rejected key is forgotten.
    """
    collector = services.collector
    snapshot = collector.status()

    alert = None
    if services.take_fatal_error() is not None:
        alert = translator.t("alerts.invalidApiKey")

    return PipelineStatusResponse(
        current_video=snapshot.current_video,
        videos_pending=snapshot.videos_pending,
        current_frame_source=snapshot.current_job_source,
        frames_pending=snapshot.jobs_pending,
        is_busy=snapshot.is_busy,
        image_count=len(collector.store),
        interval_seconds=collector.video_queue.interval_seconds,
        message=describe_status(snapshot, translator),
        alert=alert,
    )
