from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.domain.errors import NoApiKeyConfigured, UpstreamRequestFailed

logger = logging.getLogger(__name__)


class OpenRouterClient:
    """Thin async wrapper around the OpenRouter chat-completions endpoint.

    The ``httpx.AsyncClient`` is injected so its lifecycle belongs to the
    application, and so tests can swap in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str | None,
        base_url: str = "https://openrouter.ai/api/v1",
        site_url: str | None = None,
        site_title: str | None = None,
    ) -> None:
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.site_url = site_url
        self.site_title = site_title

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.site_title:
            headers["X-Title"] = self.site_title
        return headers

    async def chat_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a chat completion and return the decoded JSON body.

        Raises:
            NoApiKeyConfigured: no key, nothing was sent
            UpstreamRequestFailed: transport error, timeout, non-2xx, or non-JSON body
        """
        if not self.configured:
            raise NoApiKeyConfigured("OPENROUTER_API_KEY is not configured")
        start = time.time()
        try:
            response = await self.http.post(
                f"{self.base_url}/chat/completions", json=payload, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise UpstreamRequestFailed(f"OpenRouter request failed: {exc!r}") from exc

        if response.is_error:
            raise UpstreamRequestFailed(
                f"OpenRouter returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamRequestFailed("OpenRouter returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise UpstreamRequestFailed("OpenRouter returned an unexpected body")

        usage = data.get("usage") or {}
        logger.info(
            f"OpenRouter: {time.time() - start:.2f}s, {usage.get('prompt_tokens', 0)} prompt, "
            f"{usage.get('completion_tokens', 0)} completion tokens"
        )
        return data
