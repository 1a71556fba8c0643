from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from src.application.dtos.stream_dto import (
    DebugEvent,
    EndEvent,
    ErrorEvent,
    PlannerSourceEvent,
    PlansEvent,
    StreamEvent,
)
from src.application.use_cases.generate_plans import PlanStrategy
from src.application.use_cases.run_plans import ExecutionOrchestrator
from src.domain.entities.planning import PlanSet
from src.domain.services.plan_catalog import FixedPlanSource

logger = logging.getLogger(__name__)


@dataclass
class GenerateImagesUseCase:
    """
    One generation session per request, streamed as typed events.

    Three entry points share the same sequence: ``planner-source``, ``plans``,
    one ``step-result`` per persisted step, then exactly one terminal ``end``
    or ``error``:

    - ``base_generation``: prompt only, a single implicit ``googleEdit`` step
    - ``variations``: one source image, one planned variation per id
    - ``mashup``: several images merged by one ``googleEdit`` step
    """

    planner: PlanStrategy
    orchestrator: ExecutionOrchestrator
    image_model_name: str

    @property
    def generative_source(self) -> str:
        return f"google:{self.image_model_name}"

    def base_generation(self, prompt: str, node_id: str) -> AsyncIterator[StreamEvent]:
        return self._guarded(self._base_generation(prompt, node_id), "Generation complete")

    def variations(
        self, prompt: str, image: bytes, variation_ids: Sequence[str]
    ) -> AsyncIterator[StreamEvent]:
        return self._guarded(
            self._variations(prompt, image, list(variation_ids)), "All variations complete"
        )

    def mashup(
        self, prompt: str, node_id: str, images: Sequence[bytes]
    ) -> AsyncIterator[StreamEvent]:
        return self._guarded(self._mashup(prompt, node_id, list(images)), "Generation complete")

    async def _base_generation(self, prompt: str, node_id: str) -> AsyncIterator[StreamEvent]:
        plan_set = PlanSet({node_id: FixedPlanSource.base_plan(prompt)})
        yield PlannerSourceEvent(source=self.generative_source)
        yield PlansEvent(plans=plan_set.to_dict())
        async with aclosing(self.orchestrator.run(plan_set)) as steps:
            async for event in steps:
                yield event

    async def _variations(
        self, prompt: str, image: bytes, variation_ids: list[str]
    ) -> AsyncIterator[StreamEvent]:
        result = await self.planner.plan(prompt, image, len(variation_ids))
        logger.info(
            f"Planner result: source={result.source}, status={result.status.value}, "
            f"plans={len(result.plans)}"
        )
        plan_set = PlanSet.assign(variation_ids, list(result.plans))
        yield PlannerSourceEvent(source=result.source)
        yield PlansEvent(plans=plan_set.to_dict())
        async with aclosing(self.orchestrator.run(plan_set, source=image)) as steps:
            async for event in steps:
                yield event

    async def _mashup(
        self, prompt: str, node_id: str, images: list[bytes]
    ) -> AsyncIterator[StreamEvent]:
        plan_set = PlanSet({node_id: FixedPlanSource.base_plan(prompt)})
        yield DebugEvent(images=len(images), prompt=prompt[:280])
        yield PlannerSourceEvent(source=self.generative_source)
        yield PlansEvent(plans=plan_set.to_dict())
        async with aclosing(self.orchestrator.run(plan_set, references=images)) as steps:
            async for event in steps:
                yield event

    async def _guarded(
        self, events: AsyncIterator[StreamEvent], end_message: str
    ) -> AsyncIterator[StreamEvent]:
        try:
            async with aclosing(events) as stream:
                async for event in stream:
                    yield event
        except Exception as exc:
            logger.exception("Generation stream failed")
            yield ErrorEvent(message=str(exc) or type(exc).__name__)
            return
        yield EndEvent(message=end_message)
