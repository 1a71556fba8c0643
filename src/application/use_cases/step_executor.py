from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import numpy as np

from src.domain.entities.operation import Operation, OperationKind
from src.domain.errors import InvalidResponseFormat, NoImageReturned
from src.domain.services.operation_catalog import get_schema
from src.domain.services.processing_service import ProcessingService
from src.infrastructure.storage.image_codec import (
    decode_to_numpy,
    encode_numpy,
    parse_data_uri,
)

logger = logging.getLogger(__name__)

# brightness/contrast never go fully black or flat
MIN_TONE_FACTOR = 0.1


class ImageModel(Protocol):
    async def generate(self, prompt: str, images: Sequence[bytes] = ()) -> list[dict[str, Any]]:
        ...


def _bounded(kind: OperationKind, name: str, value: Any) -> float:
    return get_schema(kind).param(name).clamp(float(value))


def _percent_factor(value: float) -> float:
    """-100..100 percent to a 0..2 multiplier."""
    return (value + 100.0) / 100.0


def _wrapped_degrees(value: Any) -> float:
    spec = get_schema(OperationKind.HUE).param("value")
    span = spec.maximum - spec.minimum
    return (float(value) - spec.minimum) % span + spec.minimum


def _parse_hex(color: str) -> tuple[float, float, float]:
    hex_str = color.lstrip("#")
    return (
        int(hex_str[0:2], 16) / 255.0,
        int(hex_str[2:4], 16) / 255.0,
        int(hex_str[4:6], 16) / 255.0,
    )


def extract_image_bytes(blocks: Sequence[Any]) -> bytes:
    """Return the first image in a model response.

    Each block is checked for an ``image_url`` data URI (a string or an
    ``{"url": ...}`` object) first, then for ``inline_data``/``inlineData``
    base64 payloads.

    Raises:
        NoImageReturned: no block carries an image
        InvalidResponseFormat: an image block is present but cannot be decoded
    """
    for block in blocks or []:
        if not isinstance(block, dict):
            continue
        image_url = block.get("image_url")
        if isinstance(image_url, dict):
            image_url = image_url.get("url")
        if image_url:
            _, data = parse_data_uri(image_url)
            return data
        inline = block.get("inline_data") or block.get("inlineData")
        if inline:
            payload = inline.get("data") if isinstance(inline, dict) else None
            if not payload:
                raise InvalidResponseFormat("Inline image block has no data")
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError, TypeError) as exc:
                raise InvalidResponseFormat(f"Inline image data is not base64: {exc}") from exc
    raise NoImageReturned("No image from model")


@dataclass
class StepExecutor:
    """Apply one operation to one encoded image buffer.

    Local operations are decoded to NumPy, transformed by
    :class:`ProcessingService`, and re-encoded as JPEG in a worker thread.
    ``googleEdit`` is delegated to the image model. Any failure inside a step
    returns the input buffer unchanged.
    """

    image_model: ImageModel
    processing: ProcessingService = field(default_factory=ProcessingService)

    async def apply(
        self,
        buffer: bytes | None,
        operation: Operation,
        references: Sequence[bytes] = (),
    ) -> bytes | None:
        try:
            if operation.kind is OperationKind.GOOGLE_EDIT:
                return await self._generative_edit(buffer, operation, references)
            if buffer is None:
                logger.warning(f"Skipping {operation.kind.value}: no input image")
                return buffer
            return await asyncio.to_thread(self._local_edit, buffer, operation)
        except Exception:
            logger.exception(f"Error applying step {operation.kind.value}")
            return buffer

    async def _generative_edit(
        self, buffer: bytes | None, operation: Operation, references: Sequence[bytes]
    ) -> bytes:
        images = ([buffer] if buffer is not None else []) + list(references)
        blocks = await self.image_model.generate(str(operation.params.get("prompt", "")), images)
        return extract_image_bytes(blocks)

    def _local_edit(self, buffer: bytes, operation: Operation) -> bytes:
        matrix = decode_to_numpy(buffer)
        out = self.transform(matrix, operation)
        if out is None:
            return buffer
        return encode_numpy(out)

    def transform(self, matrix: np.ndarray, operation: Operation) -> np.ndarray | None:
        """Run a local operation on a float RGB array; ``None`` for unsupported kinds.

        Numeric params are first bounded to their catalog range.
        """
        kind = operation.kind
        params = operation.params

        if kind is OperationKind.BRIGHTNESS:
            factor = _percent_factor(_bounded(kind, "value", params.get("value", 0)))
            return self.processing.adjust_brightness(matrix, max(factor, MIN_TONE_FACTOR))
        if kind is OperationKind.CONTRAST:
            factor = _percent_factor(_bounded(kind, "value", params.get("value", 0)))
            return self.processing.adjust_contrast(matrix, max(factor, MIN_TONE_FACTOR))
        if kind is OperationKind.SATURATION:
            factor = _percent_factor(_bounded(kind, "value", params.get("value", 0)))
            return self.processing.adjust_saturation(matrix, factor)
        if kind is OperationKind.HUE:
            return self.processing.rotate_hue(matrix, _wrapped_degrees(params.get("value", 0)))
        if kind is OperationKind.FILTER:
            if params.get("type") == "grayscale":
                return self.processing.grayscale(matrix)
            if params.get("type") == "sepia":
                return self.processing.sepia(matrix)
            return None
        if kind is OperationKind.TINT:
            spec = get_schema(kind).param("strength")
            strength = spec.clamp(float(params.get("strength", 0))) / spec.maximum
            return self.processing.tint(
                matrix, _parse_hex(str(params.get("color", "#ffffff"))), strength
            )
        if kind is OperationKind.ROTATE:
            return self.processing.rotate(matrix, float(params.get("degrees", 90)))
        return None
