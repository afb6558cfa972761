"""
Liveness and readiness probes.

- GET /health answers as long as the process is up.
- GET /health/ready answers 200 only when an upload would actually be
  processed end to end: settings are consistent, a decoder is wired in
  and the classifier holds an API key. Otherwise 503 with the failing
  checks listed.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from ... import __version__
from ..dependencies import AppServices, ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = Field(default_factory=dict)


class ReadinessCheck(BaseModel):
    name: str
    ok: bool
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str = Field(description='"ready" or "not_ready"')
    version: str
    checks: list[ReadinessCheck]


def _run_checks(services: AppServices) -> list[ReadinessCheck]:
    problems = services.settings.validate_required_fields()
    settings_check = ReadinessCheck(
        name="configuration",
        ok=not problems,
        error=f"Invalid settings: {', '.join(problems)}" if problems else None,
    )

    decoder_check = ReadinessCheck(
        name="decoder",
        ok=services.decoder is not None,
        error=None if services.decoder is not None else "No video decoder configured",
    )

    credential_check = ReadinessCheck(
        name="classifier",
        ok=services.has_credential,
        error=None if services.has_credential else "API key not configured",
    )

    return [settings_check, decoder_check, credential_check]


@router.get("", response_model=HealthResponse, summary="Liveness probe")
async def health_check(services: ServicesDep) -> HealthResponse:
    settings = services.settings
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "classifier": settings.classifier_mock_mode,
                "video": settings.video_mock_mode,
            },
            "images": len(services.collector.store),
        },
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={503: {"description": "A check failed", "model": ReadinessResponse}},
)
async def readiness_check(services: ServicesDep, response: Response) -> ReadinessResponse:
    checks = _run_checks(services)
    ready = all(check.ok for check in checks)

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed": [check.name for check in checks if not check.ok]},
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )
