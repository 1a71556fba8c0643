"""Boundary between loose model output and the operation catalog.

``normalize_step`` maps known alternate spellings onto the canonical schema.
It is idempotent and never fills in a required field that has no source.
``build_plan`` then validates each step and enforces plan-level rules.
"""
from __future__ import annotations

import copy
import logging
from typing import Any

from src.domain.entities.operation import MAX_PLAN_STEPS, Operation, Plan
from src.domain.errors import InvalidOperation
from src.domain.services.operation_catalog import parse_operation

logger = logging.getLogger(__name__)

# op -> (alternate param name, converter to canonical "value")
_VALUE_ALIASES: dict[str, tuple[str, Any]] = {
    "brightness": ("factor", lambda f: round((float(f) - 1.0) * 100)),
    "saturation": ("factor", lambda f: round((float(f) - 1.0) * 100)),
    "contrast": ("strength", lambda s: round((float(s) - 1.0) * 100)),
    "hue": ("degrees", float),
}


def normalize_step(step: Any) -> dict[str, Any] | None:
    if not isinstance(step, dict):
        return None
    s = copy.deepcopy(step)
    if "op" not in s and "kind" in s:
        s["op"] = s.pop("kind")
    if "params" not in s and "param" in s:
        s["params"] = s.pop("param")
    op = s.get("op")
    if not op:
        return None

    params = s.get("params")
    if op == "filter" and isinstance(params, str):
        s["params"] = {"type": params}
    elif isinstance(params, dict) and op in _VALUE_ALIASES:
        alias, convert = _VALUE_ALIASES[op]
        if params.get(alias) is not None and params.get("value") is None:
            try:
                params["value"] = convert(params[alias])
            except (TypeError, ValueError):
                pass
    return s


def build_plan(raw_steps: Any) -> Plan:
    """Normalize and validate one raw operations array into a Plan.

    Invalid steps are dropped, only the first generative step is kept, and
    the plan is capped at ``MAX_PLAN_STEPS``.
    """
    if not isinstance(raw_steps, list):
        return ()
    steps: list[Operation] = []
    has_generative = False
    for raw in raw_steps:
        normalized = normalize_step(raw)
        if normalized is None:
            logger.warning(f"Dropping malformed plan step: {raw!r}")
            continue
        try:
            operation = parse_operation(normalized)
        except InvalidOperation as exc:
            logger.warning(f"Dropping invalid plan step {raw!r}: {exc}")
            continue
        if operation.kind.is_generative:
            if has_generative:
                logger.warning("Dropping extra googleEdit step; one per plan")
                continue
            has_generative = True
        steps.append(operation)
    if len(steps) > MAX_PLAN_STEPS:
        logger.warning(f"Truncating plan from {len(steps)} to {MAX_PLAN_STEPS} steps")
        steps = steps[:MAX_PLAN_STEPS]
    return tuple(steps)
