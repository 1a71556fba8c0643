from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Sequence
from typing import Any

from google import genai
from google.genai import types

from src.domain.errors import ImageModelUnavailable
from src.infrastructure.storage.image_codec import sniff_mime

logger = logging.getLogger(__name__)


class GeminiImageClient:
    """Single-turn image generation/editing against a Gemini image model.

    Responses are flattened into content blocks:
    ``{"type": "text", "text": ...}`` or
    ``{"type": "image", "inline_data": {"data": <base64>, "mime_type": ...}}``.
    """

    def __init__(self, api_key: str | None, model: str, timeout: float = 60.0) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        if not self.api_key:
            raise ImageModelUnavailable("GOOGLE_API_KEY is not configured")
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    async def generate(self, prompt: str, images: Sequence[bytes] = ()) -> list[dict[str, Any]]:
        contents: list[Any] = []
        if prompt:
            contents.append(prompt)
        for data in images:
            contents.append(types.Part.from_bytes(data=data, mime_type=sniff_mime(data)))
        config = types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            temperature=0,
        )
        logger.info(f"Image model request: model={self.model}, images={len(images)}")
        response = await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.model, contents=contents, config=config
            ),
            timeout=self.timeout,
        )
        return _response_blocks(response)

    async def close(self) -> None:
        self._client = None


def _response_blocks(response: Any) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for candidate in response.candidates or []:
        content = candidate.content
        for part in (content.parts if content else None) or []:
            if part.inline_data is not None and part.inline_data.data:
                blocks.append(
                    {
                        "type": "image",
                        "inline_data": {
                            "data": base64.b64encode(part.inline_data.data).decode("ascii"),
                            "mime_type": part.inline_data.mime_type or "image/png",
                        },
                    }
                )
            elif part.text:
                blocks.append({"type": "text", "text": part.text})
        if blocks:
            break
    return blocks
