from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from src.application.dtos.common_dto import ErrorResponse
from src.domain.errors import CacheUnavailable
from src.infrastructure.api.dependencies import get_image_cache
from src.infrastructure.cache.image_cache import ImageCache

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/images",
    tags=["Images"],
    responses={
        404: {"model": ErrorResponse, "description": "Not Found - Key expired or never existed"},
    },
)


@router.get(
    "/{key}",
    response_class=PlainTextResponse,
    summary="Fetch Step Image",
    description="""
    Return a persisted step image as raw data-URI text.

    Keys have the form `image:{variationId}:{stepIndex}` and come from
    `step-result` events. Entries expire after `IMAGE_TTL_SECONDS`.
    """,
    response_description="The image as `data:<mime>;base64,<payload>`",
    responses={503: {"model": ErrorResponse, "description": "Service Unavailable - Image cache unreachable"}},
)
async def get_image(key: str, cache: ImageCache = Depends(get_image_cache)):
    """Fetch a step image by its cache key."""
    try:
        data_uri = await cache.get(key)
    except CacheUnavailable as exc:
        logger.error(f"Image fetch failed for {key}: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image cache unavailable") from exc
    if not data_uri:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return PlainTextResponse(data_uri)
