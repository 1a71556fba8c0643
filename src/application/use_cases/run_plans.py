from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from src.application.dtos.stream_dto import StepResultEvent
from src.application.use_cases.step_executor import StepExecutor
from src.domain.entities.planning import ExecutionUnit, PlanSet
from src.domain.errors import CacheUnavailable
from src.infrastructure.cache.image_cache import ImageCache, image_key
from src.infrastructure.storage.image_codec import to_data_uri

logger = logging.getLogger(__name__)

_DONE = object()


@dataclass
class ExecutionOrchestrator:
    """
    Run a plan set: variations concurrently, steps within a variation in order.

    Every step result is persisted under ``image:{variationId}:{stepIndex}``
    and handed to the consumer before the next step of that variation starts
    (each queued event waits for the consumer to pick it up).

    A failed step keeps the previous buffer. A step with no image (a failed
    text-to-image call) or a failed cache write is logged and not emitted.
    """

    executor: StepExecutor
    cache: ImageCache
    ttl_seconds: int = 3600

    async def run(
        self,
        plan_set: PlanSet,
        source: bytes | None = None,
        references: Sequence[bytes] = (),
    ) -> AsyncIterator[StepResultEvent]:
        units = [ExecutionUnit(vid, plan_set[vid]) for vid in plan_set]
        queue: asyncio.Queue = asyncio.Queue()
        tasks = [
            asyncio.create_task(
                self._run_unit(unit, source, references, queue),
                name=f"variation-{unit.variation_id}",
            )
            for unit in units
        ]
        logger.info(f"Running {len(units)} plan(s), {sum(len(u.plan) for u in units)} step(s)")
        remaining = len(tasks)
        try:
            while remaining:
                item = await queue.get()
                if item is _DONE:
                    remaining -= 1
                    continue
                event, delivered = item
                yield event
                delivered.set()
            for task in tasks:
                exc = task.exception()
                if exc is not None:
                    raise exc
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _run_unit(
        self,
        unit: ExecutionUnit,
        source: bytes | None,
        references: Sequence[bytes],
        queue: asyncio.Queue,
    ) -> None:
        try:
            buffer = source
            for index, operation in enumerate(unit.plan):
                step_refs = references if index == 0 else ()
                try:
                    result = await self.executor.apply(buffer, operation, step_refs)
                except Exception:
                    logger.exception(
                        f"Step {index} ({operation.kind.value}) of {unit.variation_id} failed"
                    )
                    result = buffer
                if result is not None:
                    buffer = result
                unit.advance(index)

                if buffer is None:
                    logger.warning(f"No image for {unit.variation_id} step {index}; not emitted")
                    continue
                key = image_key(unit.variation_id, index)
                try:
                    await self.cache.put(key, to_data_uri(buffer), self.ttl_seconds)
                except CacheUnavailable as exc:
                    logger.error(f"Could not persist {key}: {exc}")
                    continue

                delivered = asyncio.Event()
                await queue.put(
                    (StepResultEvent(variation_id=unit.variation_id, step_index=index, key=key), delivered)
                )
                await delivered.wait()
        finally:
            queue.put_nowait(_DONE)
