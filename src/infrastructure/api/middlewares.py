from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware

from src.infrastructure.config import Settings

logger = logging.getLogger(__name__)

# Frontend dev servers (Vite, Next) allowed when CORS_ORIGINS is unset
DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def allowed_origins(settings: Settings) -> list[str]:
    if settings.cors_origins:
        return list(settings.cors_origins)
    if settings.env in ("development", "staging"):
        return list(DEV_ORIGINS)
    return ["*"]


def add_default_middlewares(app: FastAPI, settings: Settings) -> None:
    origins = allowed_origins(settings)
    if "*" in origins:
        logger.warning("CORS allows all origins; set CORS_ORIGINS to restrict it")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        # streamed bodies are still open when call_next returns
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"(ttfb {(time.time() - start) * 1000:.0f}ms)"
        )
        return response
