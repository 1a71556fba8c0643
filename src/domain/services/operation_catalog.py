from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from src.domain.entities.operation import Operation, OperationKind
from src.domain.errors import InvalidOperation, UnknownOperation

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass(frozen=True)
class ParamSpec:
    name: str
    type: str  # "number" | "string"
    minimum: float | None = None
    maximum: float | None = None
    enum: tuple[str, ...] | None = None
    pattern: str | None = None
    description: str = ""

    def clamp(self, value: float) -> float:
        """Bound a numeric value to ``[minimum, maximum]``; open ends pass through."""
        if self.minimum is not None:
            value = max(value, self.minimum)
        if self.maximum is not None:
            value = min(value, self.maximum)
        return value

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.pattern:
            schema["pattern"] = self.pattern
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class OperationSchema:
    kind: OperationKind
    params: tuple[ParamSpec, ...]
    description: str

    @property
    def required(self) -> list[str]:
        return [p.name for p in self.params]

    def param(self, name: str) -> ParamSpec:
        for spec in self.params:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.kind.value} has no param '{name}'")

    def json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "op": {"const": self.kind.value},
                "params": {
                    "type": "object",
                    "properties": {p.name: p.json_schema() for p in self.params},
                    "required": self.required,
                },
            },
            "required": ["op", "params"],
        }


def _percent(description: str) -> ParamSpec:
    return ParamSpec("value", "number", -100, 100, description=description)


CATALOG: dict[OperationKind, OperationSchema] = {
    OperationKind.BRIGHTNESS: OperationSchema(
        OperationKind.BRIGHTNESS,
        (_percent("-100..100, positive brightens"),),
        "Multiplicative brightness adjustment",
    ),
    OperationKind.CONTRAST: OperationSchema(
        OperationKind.CONTRAST,
        (_percent("-100..100, positive increases contrast"),),
        "Linear contrast adjustment around mid-gray",
    ),
    OperationKind.SATURATION: OperationSchema(
        OperationKind.SATURATION,
        (_percent("-100..100, positive increases saturation"),),
        "Saturation scale",
    ),
    OperationKind.HUE: OperationSchema(
        OperationKind.HUE,
        (ParamSpec("value", "number", -180, 180, description="-180..180 degrees"),),
        "Hue rotation",
    ),
    OperationKind.FILTER: OperationSchema(
        OperationKind.FILTER,
        (ParamSpec("type", "string", enum=("grayscale", "sepia")),),
        "Tone-mapping filter",
    ),
    OperationKind.TINT: OperationSchema(
        OperationKind.TINT,
        (
            ParamSpec("color", "string", pattern=_HEX_COLOR.pattern, description="#RRGGBB"),
            ParamSpec("strength", "number", 0, 100, description="0..100"),
        ),
        "Color overlay blend",
    ),
    OperationKind.ROTATE: OperationSchema(
        OperationKind.ROTATE,
        (ParamSpec("degrees", "number", description="clockwise degrees"),),
        "Geometric rotation",
    ),
    OperationKind.GOOGLE_EDIT: OperationSchema(
        OperationKind.GOOGLE_EDIT,
        (ParamSpec("prompt", "string", description="elaborate generative edit instruction"),),
        "Generative edit delegated to an external image model",
    ),
}


def get_schema(kind: str | OperationKind) -> OperationSchema:
    try:
        return CATALOG[OperationKind(kind)]
    except ValueError as exc:
        raise UnknownOperation(f"Unsupported operation: {kind}") from exc


def _coerce(spec: ParamSpec, value: Any) -> Any:
    if spec.type == "number":
        if isinstance(value, bool):
            raise InvalidOperation(f"{spec.name} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidOperation(f"{spec.name} must be a number, got {value!r}") from exc
        if number != number or number in (float("inf"), float("-inf")):
            raise InvalidOperation(f"{spec.name} must be finite")
        return number
    if not isinstance(value, str):
        raise InvalidOperation(f"{spec.name} must be a string, got {value!r}")
    if spec.enum and value not in spec.enum:
        raise InvalidOperation(f"{spec.name} must be one of {list(spec.enum)}, got {value!r}")
    if spec.pattern and not re.match(spec.pattern, value):
        raise InvalidOperation(f"{spec.name} does not match {spec.pattern}: {value!r}")
    return value


def parse_operation(raw: Any) -> Operation:
    """Validate an untrusted ``{"op", "params"}`` dict into an :class:`Operation`.

    Numeric ranges are not enforced here; the step executor clamps them.
    Extra params are discarded.
    """
    if not isinstance(raw, dict):
        raise InvalidOperation(f"Operation must be an object, got {type(raw).__name__}")
    kind = raw.get("op", raw.get("kind"))
    if not kind:
        raise InvalidOperation("Operation is missing 'op'")
    schema = get_schema(kind)
    params = raw.get("params")
    if not isinstance(params, dict):
        raise InvalidOperation(f"{schema.kind.value}: 'params' must be an object")
    clean: dict[str, Any] = {}
    for spec in schema.params:
        if params.get(spec.name) is None:
            raise InvalidOperation(f"{schema.kind.value}: missing required param '{spec.name}'")
        clean[spec.name] = _coerce(spec, params[spec.name])
    return Operation(schema.kind, clean)


def build_tool_schema() -> list[dict[str, Any]]:
    """Function-tool declaration offered to the planning model."""
    operation_schema = {"anyOf": [schema.json_schema() for schema in CATALOG.values()]}
    return [
        {
            "type": "function",
            "function": {
                "name": "plan_variations",
                "description": (
                    "Return multiple complete variation plans. Each variation is a "
                    "self-contained sequence of operations producing a final image "
                    "for user selection."
                ),
                "parameters": {
                    "type": "object",
                    "properties": {
                        "variations": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "operations": {"type": "array", "items": operation_schema},
                                },
                                "required": ["operations"],
                            },
                        },
                    },
                    "required": ["variations"],
                },
            },
        }
    ]
