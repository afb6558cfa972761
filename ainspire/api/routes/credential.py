"""
Classifier credential endpoints.

The key itself is never returned; clients can only learn whether one
is configured.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ..dependencies import ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter()


class CredentialRequest(BaseModel):
    api_key: str = Field(min_length=1, description="Anthropic API key")


class CredentialStatus(BaseModel):
    configured: bool


@router.get("", response_model=CredentialStatus, summary="Is an API key configured?")
async def get_credential(services: ServicesDep) -> CredentialStatus:
    # read-only: a rejected key is reported and forgotten by /status alone
    return CredentialStatus(configured=services.has_credential)


@router.put(
    "",
    response_model=CredentialStatus,
    summary="Store the API key",
)
async def put_credential(request: CredentialRequest, services: ServicesDep) -> CredentialStatus:
    try:
        services.set_credential(request.api_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("API key updated")
    return CredentialStatus(configured=services.has_credential)


@router.delete(
    "",
    response_model=CredentialStatus,
    summary="Forget the API key",
)
async def delete_credential(services: ServicesDep) -> CredentialStatus:
    services.clear_credential()
    return CredentialStatus(configured=services.has_credential)
