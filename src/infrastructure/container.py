from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from src.application.use_cases.generate_plans import OpenRouterPlanner, PlannerChain, PlanStrategy
from src.domain.services.plan_catalog import FixedPlanSource
from src.infrastructure.cache.image_cache import ImageCache, build_image_cache, ensure_reachable
from src.infrastructure.config import Settings
from src.infrastructure.llm.gemini_image_client import GeminiImageClient
from src.infrastructure.llm.openrouter_client import OpenRouterClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Explicitly constructed external clients, owned by the application."""

    settings: Settings
    http: httpx.AsyncClient
    cache: ImageCache
    image_model: GeminiImageClient
    openrouter: OpenRouterClient

    def planner_chain(self) -> PlannerChain:
        strategies: list[PlanStrategy] = []
        if self.settings.use_ai_planner:
            strategies.append(OpenRouterPlanner(self.openrouter, self.settings.planner_model))
        strategies.append(FixedPlanSource())
        return PlannerChain(strategies)

    async def startup(self) -> None:
        self.cache = await ensure_reachable(self.cache)
        if not self.openrouter.configured:
            logger.info("OPENROUTER_API_KEY not set; AI planning disabled")
        if not self.settings.google_api_key:
            logger.warning("GOOGLE_API_KEY not set; googleEdit steps will pass through")

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.cache.close()
        await self.image_model.close()


def build_container(settings: Settings) -> ServiceContainer:
    http = httpx.AsyncClient(timeout=settings.planner_timeout_seconds)
    return ServiceContainer(
        settings=settings,
        http=http,
        cache=build_image_cache(settings.redis_url, settings.cache_disabled),
        image_model=GeminiImageClient(
            settings.google_api_key,
            settings.image_model,
            timeout=settings.image_model_timeout_seconds,
        ),
        openrouter=OpenRouterClient(
            http,
            settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            site_url=settings.openrouter_site_url,
            site_title=settings.openrouter_site_title,
        ),
    )
