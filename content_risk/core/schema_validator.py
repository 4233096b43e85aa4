"""Lenient validation of model-produced structured data.

Generative models return loosely typed JSON: scores as strings, scores on
the wrong scale, levels in lower case, single strings where lists belong.
The annotated types below coerce those values instead of rejecting them,
so only genuinely missing required fields fail validation.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

RiskLevelName = Literal["LOW", "MEDIUM", "HIGH"]

_LEVEL_ALIASES = {
    "LOW": "LOW",
    "NONE": "LOW",
    "MINIMAL": "LOW",
    "MEDIUM": "MEDIUM",
    "MODERATE": "MEDIUM",
    "HIGH": "HIGH",
    "SEVERE": "HIGH",
    "CRITICAL": "HIGH",
}


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a number into [low, high]."""
    return max(low, min(high, value))


def _coerce_score(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return clamp_score(number)


def _coerce_level(value: Any) -> str:
    if not isinstance(value, str):
        return "LOW"
    return _LEVEL_ALIASES.get(value.strip().upper(), "LOW")


def _coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return [str(value)]


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(str(item) for item in value)
    return str(value)


# Numeric score clamped to [0, 100]; unparseable values become 0
Score = Annotated[float, BeforeValidator(_coerce_score)]

# LOW / MEDIUM / HIGH, case-insensitive, unknown values become LOW
Level = Annotated[RiskLevelName, BeforeValidator(_coerce_level)]

# List of strings; None becomes [], a bare string becomes a one-item list
StrList = Annotated[list[str], BeforeValidator(_coerce_str_list)]

# Free text; None becomes ""
Text = Annotated[str, BeforeValidator(_coerce_text)]


@dataclass
class ValidationOutcome:
    """Result of validating a value against a shape."""

    valid: bool
    data: Any = None
    errors: list[str] = field(default_factory=list)


@lru_cache(maxsize=64)
def _adapter_for(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


class SchemaValidator:
    """Validate parsed values against pydantic models or typing shapes."""

    def validate(self, value: Any, shape: Any) -> ValidationOutcome:
        """
        Validate and coerce a parsed value.

        Args:
            value: Parsed JSON value
            shape: Pydantic model class or typing annotation
                (e.g. ``dict[str, PolicyCategoryAnalysis]``)

        Returns:
            ValidationOutcome with the coerced data, or the error list
        """
        try:
            data = _adapter_for(shape).validate_python(value)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ]
            logger.debug(f"Schema validation failed: {errors[:5]}")
            return ValidationOutcome(valid=False, errors=errors)

        return ValidationOutcome(valid=True, data=data)
