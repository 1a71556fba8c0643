from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OperationKind(str, Enum):
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    SATURATION = "saturation"
    HUE = "hue"
    FILTER = "filter"
    TINT = "tint"
    ROTATE = "rotate"
    GOOGLE_EDIT = "googleEdit"

    @property
    def is_generative(self) -> bool:
        return self is OperationKind.GOOGLE_EDIT


@dataclass(frozen=True)
class Operation:
    """One typed, fully concrete edit step.

    Serialized on the wire as ``{"op": <kind>, "params": {...}}``.
    """

    kind: OperationKind
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.kind.value, "params": dict(self.params)}


# A plan is an ordered, immutable sequence of operations (0-6 steps).
Plan = tuple[Operation, ...]

MAX_PLAN_STEPS = 6


def plan_to_list(plan: Plan) -> list[dict[str, Any]]:
    return [op.to_dict() for op in plan]
