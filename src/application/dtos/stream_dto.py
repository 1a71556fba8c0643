"""Typed events emitted on a generation stream.

Each model serializes to a JSON object carrying an ``event`` discriminator;
framing for the wire lives in ``src.infrastructure.api.sse``.
"""
from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _StreamEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DebugEvent(_StreamEvent):
    event: Literal["debug"] = "debug"
    images: int | None = Field(None, description="Number of input images")
    prompt: str | None = Field(None, description="Prompt excerpt")


class PlannerSourceEvent(_StreamEvent):
    event: Literal["planner-source"] = "planner-source"
    source: str = Field(..., description="Which planner produced the plan set", examples=["openrouter"])


class PlansEvent(_StreamEvent):
    event: Literal["plans"] = "plans"
    plans: dict[str, list[dict[str, Any]]] = Field(
        ..., description="Variation id to ordered operations"
    )


class StepResultEvent(_StreamEvent):
    event: Literal["step-result"] = "step-result"
    variation_id: str = Field(..., alias="variationId")
    step_index: int = Field(..., alias="stepIndex", ge=0)
    key: str = Field(..., description="Cache key of the persisted image", examples=["image:abc:0"])


class EndEvent(_StreamEvent):
    event: Literal["end"] = "end"
    message: str = "Generation complete"


class ErrorEvent(_StreamEvent):
    event: Literal["error"] = "error"
    message: str


StreamEvent = Union[
    DebugEvent, PlannerSourceEvent, PlansEvent, StepResultEvent, EndEvent, ErrorEvent
]
