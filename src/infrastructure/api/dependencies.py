from __future__ import annotations

from fastapi import Depends, Request

from src.application.use_cases.generate_images import GenerateImagesUseCase
from src.application.use_cases.generate_plans import PlanStrategy
from src.application.use_cases.run_plans import ExecutionOrchestrator
from src.application.use_cases.step_executor import ImageModel, StepExecutor
from src.domain.services.processing_service import ProcessingService
from src.infrastructure.cache.image_cache import ImageCache
from src.infrastructure.config import Settings
from src.infrastructure.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_settings(container: ServiceContainer = Depends(get_container)) -> Settings:
    return container.settings


def get_image_cache(container: ServiceContainer = Depends(get_container)) -> ImageCache:
    return container.cache


def get_image_model(container: ServiceContainer = Depends(get_container)) -> ImageModel:
    return container.image_model


def get_planner(container: ServiceContainer = Depends(get_container)) -> PlanStrategy:
    return container.planner_chain()


def get_processing_service() -> ProcessingService:
    return ProcessingService()


def get_step_executor(
    image_model: ImageModel = Depends(get_image_model),
    processing: ProcessingService = Depends(get_processing_service),
) -> StepExecutor:
    return StepExecutor(image_model=image_model, processing=processing)


def get_generation_use_case(
    settings: Settings = Depends(get_settings),
    cache: ImageCache = Depends(get_image_cache),
    planner: PlanStrategy = Depends(get_planner),
    executor: StepExecutor = Depends(get_step_executor),
) -> GenerateImagesUseCase:
    return GenerateImagesUseCase(
        planner=planner,
        orchestrator=ExecutionOrchestrator(executor, cache, ttl_seconds=settings.image_ttl_seconds),
        image_model_name=settings.image_model,
    )
