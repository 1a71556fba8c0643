from __future__ import annotations

from itertools import cycle, islice

from src.domain.entities.operation import Operation, OperationKind, Plan
from src.domain.entities.planning import PlanResult

K = OperationKind

# Hand-authored plans used when the AI planner is unavailable.
FIXED_PLANS: tuple[Plan, ...] = (
    (Operation(K.BRIGHTNESS, {"value": 20.0}), Operation(K.CONTRAST, {"value": 10.0})),
    (Operation(K.SATURATION, {"value": 30.0}),),
    (Operation(K.HUE, {"value": 45.0}),),
    (Operation(K.FILTER, {"type": "grayscale"}),),
    (Operation(K.FILTER, {"type": "sepia"}),),
    (Operation(K.BRIGHTNESS, {"value": -15.0}), Operation(K.SATURATION, {"value": 20.0})),
    (Operation(K.CONTRAST, {"value": 25.0}),),
    (Operation(K.TINT, {"color": "#0000ff", "strength": 20.0}),),
    (Operation(K.ROTATE, {"degrees": 90.0}),),
    (Operation(K.GOOGLE_EDIT, {"prompt": "Enhance colors and details"}),),
)


def fit_to_count(plans: list[Plan] | tuple[Plan, ...], count: int) -> list[Plan]:
    """Truncate, or pad by cycling, so exactly ``count`` plans are returned."""
    if count <= 0 or not plans:
        return []
    return list(islice(cycle(plans), count))


class FixedPlanSource:
    """Canned plan table, the non-AI planning strategy."""

    source = "fallback"

    def __init__(self, plans: tuple[Plan, ...] = FIXED_PLANS) -> None:
        self.plans = plans

    def get_plans(self, count: int) -> list[Plan]:
        return fit_to_count(self.plans, count)

    async def plan(self, prompt: str, source_image: bytes | None, count: int) -> PlanResult:
        plans = self.get_plans(count)
        if not plans:
            return PlanResult.failed("No fixed plans requested")
        return PlanResult.ok(plans, self.source)

    @staticmethod
    def base_plan(prompt: str) -> Plan:
        """The implicit single-step plan of a base-generation node."""
        return (Operation(K.GOOGLE_EDIT, {"prompt": prompt}),)
