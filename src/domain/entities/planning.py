from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from src.domain.entities.operation import Plan, plan_to_list


class PlanStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class PlanResult:
    """Tagged outcome of one planning strategy."""

    plans: tuple[Plan, ...]
    source: str
    status: PlanStatus
    reason: str | None = None

    @classmethod
    def ok(cls, plans: list[Plan], source: str) -> PlanResult:
        return cls(tuple(plans), source, PlanStatus.OK)

    @classmethod
    def unavailable(cls, reason: str) -> PlanResult:
        return cls((), "none", PlanStatus.UNAVAILABLE, reason)

    @classmethod
    def failed(cls, reason: str) -> PlanResult:
        return cls((), "none", PlanStatus.FAILED, reason)

    @property
    def is_ok(self) -> bool:
        return self.status is PlanStatus.OK and bool(self.plans)


class PlanSet(Mapping):
    """Read-only mapping of variation id to plan, fixed once a session starts."""

    def __init__(self, plans: Mapping[str, Plan]) -> None:
        self._plans = MappingProxyType({vid: tuple(plan) for vid, plan in plans.items()})

    @classmethod
    def assign(cls, variation_ids: list[str], plans: list[Plan]) -> PlanSet:
        return cls(dict(zip(variation_ids, plans)))

    def __getitem__(self, variation_id: str) -> Plan:
        return self._plans[variation_id]

    def __iter__(self):
        return iter(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {vid: plan_to_list(plan) for vid, plan in self._plans.items()}


@dataclass
class ExecutionUnit:
    variation_id: str
    plan: Plan
    current_step_index: int = field(default=-1)

    @property
    def done(self) -> bool:
        return self.current_step_index >= len(self.plan) - 1

    def advance(self, step_index: int) -> None:
        if step_index <= self.current_step_index:
            raise ValueError(
                f"Step index must advance: {step_index} <= {self.current_step_index}"
            )
        self.current_step_index = step_index
