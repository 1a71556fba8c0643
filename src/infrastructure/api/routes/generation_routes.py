from __future__ import annotations

import json
import logging
import uuid
from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from PIL import Image
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from src.application.dtos.common_dto import ErrorResponse
from src.application.dtos.generation_dto import BaseGenerationRequest
from src.application.use_cases.generate_images import GenerateImagesUseCase
from src.infrastructure.api.dependencies import get_generation_use_case, get_settings
from src.infrastructure.api.sse import event_stream_response
from src.infrastructure.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Generation"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Missing field, malformed body, or invalid image"},
    },
)

_STREAM_RESPONSE = {
    200: {
        "content": {"text/event-stream": {}},
        "description": "Stream of `data: <json>` events ending with `end` or `error`",
    }
}


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def _read_image(upload: UploadFile, field: str) -> bytes:
    data = await upload.read()
    if not data:
        raise _bad_request(f"Empty image file in '{field}'")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except Exception as exc:
        raise _bad_request(f"Invalid image file in '{field}': {exc}") from exc
    return data


def _parse_variation_ids(raw: object) -> list[str]:
    if not raw:
        return []
    if not isinstance(raw, str):
        raise _bad_request("variationIds must be a text field")
    try:
        ids = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise _bad_request(f"variationIds must be a JSON array: {exc}") from exc
    if not isinstance(ids, list) or not all(isinstance(i, str) and i for i in ids):
        raise _bad_request("variationIds must be a JSON array of non-empty strings")
    if len(set(ids)) != len(ids):
        raise _bad_request("variationIds must be unique")
    return ids


def _parse_count(raw: object, maximum: int) -> int:
    if raw is None or raw == "":
        return 1
    try:
        count = int(str(raw))
    except ValueError as exc:
        raise _bad_request("count must be an integer") from exc
    if not 1 <= count <= maximum:
        raise _bad_request(f"count must be between 1 and {maximum}")
    return count


@router.post(
    "/generate-variations",
    summary="Generate Base Image or Variations",
    description="""
    Plan and execute image edits, streaming each step's result.

    **JSON body** `{prompt, nodeId}`: base generation. A single implicit
    `googleEdit` step renders the prompt into a new image for `nodeId`.

    **multipart/form-data**: `prompt`, `image` (optional), `variationIds`
    (JSON array), `count` (used when `variationIds` is empty). With an
    `image`, one plan is produced per variation id and every plan runs
    against the source image.

    Events: `planner-source`, `plans`, `step-result`*, then `end` or `error`.
    Step images are fetched from `GET /api/images/{key}`.
    """,
    response_class=StreamingResponse,
    responses=_STREAM_RESPONSE,
)
async def generate_variations(
    request: Request,
    settings: Settings = Depends(get_settings),
    use_case: GenerateImagesUseCase = Depends(get_generation_use_case),
):
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = BaseGenerationRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as exc:
            raise _bad_request(f"Invalid JSON body: {exc}") from exc
        logger.info(f"Base generation for node {body.node_id}")
        return event_stream_response(use_case.base_generation(body.prompt, body.node_id))

    if not content_type.startswith("multipart/form-data"):
        raise _bad_request("Expected application/json or multipart/form-data")

    form = await request.form()
    prompt = str(form.get("prompt") or "")
    variation_ids = _parse_variation_ids(form.get("variationIds"))
    image_file = form.get("image")

    if not isinstance(image_file, UploadFile):
        node_id = str(form.get("nodeId") or "") or (variation_ids[0] if variation_ids else "")
        if not prompt or not node_id:
            raise _bad_request("Base generation requires 'prompt' and 'nodeId'")
        return event_stream_response(use_case.base_generation(prompt, node_id))

    image = await _read_image(image_file, "image")
    if not variation_ids:
        count = _parse_count(form.get("count"), settings.max_variations)
        variation_ids = [uuid.uuid4().hex for _ in range(count)]
    if len(variation_ids) > settings.max_variations:
        raise _bad_request(f"At most {settings.max_variations} variations per request")
    logger.info(f"Variations requested: {len(variation_ids)}")
    return event_stream_response(use_case.variations(prompt, image, variation_ids))


@router.post(
    "/generate-multi-edit",
    summary="Mashup Several Images",
    description="""
    Merge several images into one node with a single generative edit.

    **multipart/form-data**: `prompt`, `nodeId`, and one or more `images`.

    Events: `debug`, `planner-source`, `plans`, `step-result`, then `end`
    or `error`.
    """,
    response_class=StreamingResponse,
    responses=_STREAM_RESPONSE,
)
async def generate_multi_edit(
    request: Request,
    use_case: GenerateImagesUseCase = Depends(get_generation_use_case),
):
    if not request.headers.get("content-type", "").startswith("multipart/form-data"):
        raise _bad_request("Expected multipart/form-data")
    form = await request.form()
    prompt = str(form.get("prompt") or "")
    node_id = str(form.get("nodeId") or "")
    if not node_id:
        raise _bad_request("Missing nodeId")
    uploads = [f for f in form.getlist("images") if isinstance(f, UploadFile)]
    if not uploads:
        raise _bad_request("No images provided")
    images = [await _read_image(f, "images") for f in uploads]
    logger.info(f"Mashup for node {node_id}: {len(images)} images")
    return event_stream_response(use_case.mashup(prompt, node_id, images))
