from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.application.dtos.common_dto import HealthResponse, RootResponse
from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.generation_routes import router as generation_router
from src.infrastructure.api.routes.image_routes import router as image_router
from src.infrastructure.cache.image_cache import InMemoryImageCache
from src.infrastructure.config import Settings, load_settings
from src.infrastructure.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, container: ServiceContainer | None = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Planner model: {settings.planner_model}")
        logger.info(f"Image model: {settings.image_model}")
        await container.startup()
        yield
        logger.info("Shutting down...")
        await container.aclose()

    app = FastAPI(
        title="PixelPlan Backend",
        version="0.1.0",
        description="""
        ## PixelPlan Backend API

        FastAPI backend for a node-graph image editor. A prompt plus optional
        source images is turned into short plans of typed edit operations,
        executed step by step with NumPy and an external image model, and
        streamed back as server-sent events.

        ### Features
        - **Base generation**: render a prompt into a new image node
        - **Variations**: plan N distinct edit sequences for a source image and run them concurrently
        - **Mashup**: merge several images with one generative edit
        - **Step images**: every intermediate result is cached and fetchable by key

        ### Stream events
        Each event is one `data: <json>` line with an `event` field:
        `debug`, `planner-source`, `plans`, `step-result`, `end`, `error`.

        ### Error Responses
        - **400 Bad Request**: Missing fields, malformed body, or invalid image (before any stream opens)
        - **404 Not Found**: Step image expired or never existed
        - **503 Service Unavailable**: Image cache unreachable
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )
    app.state.container = container
    add_default_middlewares(app, settings)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the PixelPlan API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "pixelplan-backend", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and which backends are active",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        active = app.state.container
        strategies = ["fallback"]
        if active.settings.use_ai_planner and active.openrouter.configured:
            strategies.insert(0, "openrouter")
        return {
            "status": "healthy",
            "cache": "memory" if isinstance(active.cache, InMemoryImageCache) else "redis",
            "planner": ",".join(strategies),
        }

    app.include_router(generation_router)
    app.include_router(image_router)
    return app


app = create_app()
