from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from src.application.planner_prompts import ASSISTANT_PRIMER, PLANNER_SYSTEM_PROMPT
from src.domain.entities.operation import Plan
from src.domain.entities.planning import PlanResult
from src.domain.errors import (
    ArgumentsUnparsable,
    NoApiKeyConfigured,
    PlanningError,
    ToolCallMissing,
)
from src.domain.services.operation_catalog import build_tool_schema
from src.domain.services.plan_catalog import fit_to_count
from src.domain.services.plan_normalizer import build_plan
from src.infrastructure.llm.openrouter_client import OpenRouterClient
from src.infrastructure.storage.image_codec import to_data_uri

logger = logging.getLogger(__name__)

TOOL_NAME = "plan_variations"


class PlanStrategy(Protocol):
    async def plan(self, prompt: str, source_image: bytes | None, count: int) -> PlanResult:
        ...


def _user_content(prompt: str, count: int, source_image: bytes | None) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [
        {
            "type": "text",
            "text": f"{prompt or ''}\n\nPlease propose {count} diverse yet reasonable plans.",
        }
    ]
    if source_image:
        content.append({"type": "text", "text": "Here is the source image (data URL below):"})
        content.append({"type": "image_url", "image_url": {"url": to_data_uri(source_image)}})
    return content


def parse_tool_calls(data: dict[str, Any]) -> list[Plan]:
    """Collect plans from every ``plan_variations`` call in a chat completion.

    Calls with missing or unparsable arguments are skipped as long as another
    call yields a plan.

    Raises:
        ToolCallMissing: no ``plan_variations`` call with arguments
        ArgumentsUnparsable: arguments are not a JSON object with ``variations``
    """
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ToolCallMissing("Response has no message") from exc
    if not isinstance(message, dict):
        raise ToolCallMissing("Response message is not an object")
    tool_calls = message.get("tool_calls") or []
    calls = [
        c
        for c in tool_calls
        if isinstance(c, dict) and (c.get("function") or {}).get("name") == TOOL_NAME
    ]
    logger.info(f"Planner parsed tool_calls: {len(tool_calls)} total, {len(calls)} {TOOL_NAME}")
    if not calls:
        raise ToolCallMissing(f"No {TOOL_NAME} tool call in response")

    plans: list[Plan] = []
    errors: list[PlanningError] = []
    for index, call in enumerate(calls):
        try:
            variations = _call_variations(call)
        except PlanningError as exc:
            logger.warning(f"Skipping {TOOL_NAME} call {index}: {exc}")
            errors.append(exc)
            continue
        for variation in variations:
            operations = variation.get("operations") if isinstance(variation, dict) else None
            plan = build_plan(operations)
            if plan:
                plans.append(plan)
    # a bad call only fails the response when no other call produced a plan
    if not plans and errors:
        raise errors[0]
    return plans


def _call_variations(call: dict[str, Any]) -> list[Any]:
    arguments = call["function"].get("arguments")
    if not arguments:
        raise ToolCallMissing(f"{TOOL_NAME} call has no arguments")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as exc:
            raise ArgumentsUnparsable(f"Invalid {TOOL_NAME} arguments: {exc}") from exc
    if not isinstance(arguments, dict) or not isinstance(arguments.get("variations"), list):
        raise ArgumentsUnparsable(f"{TOOL_NAME} arguments have no variations array")
    return arguments["variations"]


@dataclass
class OpenRouterPlanner:
    """AI planner: asks a tool-calling chat model for ``count`` complete plans.

    Never falls back on its own; an unconfigured key or any upstream problem
    yields an explicit empty result.
    """

    client: OpenRouterClient
    model: str
    source: str = "openrouter"

    def build_payload(self, prompt: str, source_image: bytes | None, count: int) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
                {"role": "user", "content": _user_content(prompt, count, source_image)},
                {"role": "assistant", "content": ASSISTANT_PRIMER},
            ],
            "tools": build_tool_schema(),
            "tool_choice": "required",
            "parallel_tool_calls": True,
        }

    async def plan(self, prompt: str, source_image: bytes | None, count: int) -> PlanResult:
        if not self.client.configured:
            return PlanResult.unavailable("OPENROUTER_API_KEY is not configured")
        logger.info(
            f"Planner request: model={self.model}, count={count}, "
            f"has_image={source_image is not None}"
        )
        try:
            data = await self.client.chat_completion(
                self.build_payload(prompt, source_image, count)
            )
            plans = parse_tool_calls(data)
        except NoApiKeyConfigured as exc:
            return PlanResult.unavailable(str(exc))
        except PlanningError as exc:
            logger.error(f"Planner failed: {exc}")
            return PlanResult.failed(str(exc))

        if not plans:
            logger.error("Planner returned no usable plans")
            return PlanResult.failed("No usable plans in tool call")
        fitted = fit_to_count(plans, count)
        logger.info(f"Plans ready: {len(fitted)} from {self.source} ({len(plans)} proposed)")
        return PlanResult.ok(fitted, self.source)


@dataclass
class PlannerChain:
    """Ordered planning strategies; the first ``ok`` result wins."""

    strategies: Sequence[PlanStrategy]

    async def plan(self, prompt: str, source_image: bytes | None, count: int) -> PlanResult:
        result = PlanResult.unavailable("No planning strategies configured")
        for strategy in self.strategies:
            result = await strategy.plan(prompt, source_image, count)
            if result.is_ok:
                return result
            logger.warning(
                f"{type(strategy).__name__} gave no plans ({result.status.value}: {result.reason})"
            )
        return result
