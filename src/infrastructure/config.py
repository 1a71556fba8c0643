from __future__ import annotations

import os
from dataclasses import dataclass


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default) == "1"


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    log_level: str = "INFO"
    # Planner (OpenRouter). No key means AI planning is skipped.
    openrouter_api_key: str | None = None
    planner_model: str = "openai/gpt-4o-mini"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_site_url: str | None = None
    openrouter_site_title: str | None = None
    planner_timeout_seconds: float = 60.0
    use_ai_planner: bool = True
    # Image model (Gemini)
    google_api_key: str | None = None
    image_model: str = "gemini-2.5-flash-image-preview"
    image_model_timeout_seconds: float = 60.0
    # Persisted step images
    redis_url: str | None = None
    cache_disabled: bool = False
    image_ttl_seconds: int = 3600
    max_variations: int = 10
    # Comma-separated; empty means the dev servers (or "*" outside development)
    cors_origins: tuple[str, ...] = ()


def load_settings() -> Settings:
    return Settings(
        env=os.getenv("ENV", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
        planner_model=os.getenv("OPENROUTER_PLANNER_MODEL", "openai/gpt-4o-mini"),
        openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
        openrouter_site_url=os.getenv("OPENROUTER_SITE_URL") or None,
        openrouter_site_title=os.getenv("OPENROUTER_SITE_TITLE") or None,
        planner_timeout_seconds=float(os.getenv("PLANNER_TIMEOUT_SECONDS", "60")),
        use_ai_planner=_flag("USE_AI_PLANNER", "1"),
        google_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or None,
        image_model=os.getenv("GOOGLE_IMAGE_MODEL", "gemini-2.5-flash-image-preview"),
        image_model_timeout_seconds=float(os.getenv("IMAGE_MODEL_TIMEOUT_SECONDS", "60")),
        redis_url=os.getenv("REDIS_URL") or None,
        cache_disabled=_flag("CACHE_DISABLED"),
        image_ttl_seconds=int(os.getenv("IMAGE_TTL_SECONDS", "3600")),
        max_variations=int(os.getenv("MAX_VARIATIONS", "10")),
        cors_origins=tuple(o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()),
    )
