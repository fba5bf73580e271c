"""Parameter validation against declared ParamSpec lists.

Validation is fail-fast: specs are checked in declared order and the first
violation raises ``ValidationError``. Keys with no matching ParamSpec are ignored.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from ops_console.domain.models import ParamSpec, ParamType
from ops_console.errors import ValidationError

_BOOLEAN_STRINGS = frozenset({"true", "false"})

# Characters rejected in string parameters bound into query templates.
_INJECTION_CHARACTERS = frozenset(";'\"\\")


def validate_params(specs: Sequence[ParamSpec], params: Mapping[str, object]) -> None:
    for spec in specs:
        if spec.name not in params:
            if spec.required:
                raise ValidationError(f"Missing required parameter: {spec.name}")
            continue

        value = params[spec.name]
        if value is None:
            if spec.required:
                raise ValidationError(f"Parameter {spec.name} cannot be empty")
            continue

        _check_type(spec, value)


def validate_query_params(specs: Sequence[ParamSpec], params: Mapping[str, object]) -> None:
    """Apply the shared ParamSpec rules, then reject SQL metacharacters.

    The character guard covers declared parameters first and then any extra
    string values passed alongside them.
    """
    validate_params(specs, params)

    declared = [spec.name for spec in specs]
    for name in declared:
        _check_injection(name, params.get(name))
    for name, value in params.items():
        if name not in declared:
            _check_injection(name, value)


def _check_type(spec: ParamSpec, value: object) -> None:
    if spec.type is ParamType.NUMBER:
        if not _is_number(value):
            raise ValidationError(f"Parameter {spec.name} must be a number")
    elif spec.type is ParamType.BOOLEAN:
        if not isinstance(value, bool) and not (
            isinstance(value, str) and value in _BOOLEAN_STRINGS
        ):
            raise ValidationError(f"Parameter {spec.name} must be a boolean")
    elif spec.type is ParamType.EMAIL:
        if not isinstance(value, str) or "@" not in value:
            raise ValidationError(f"Parameter {spec.name} must be a valid email")
    elif spec.type is ParamType.SELECT and spec.options:
        if value not in spec.options:
            raise ValidationError(
                f"Parameter {spec.name} must be one of: {', '.join(spec.options)}"
            )


def _is_number(value: object) -> bool:
    """Accept real numbers and numeric strings such as form input ``"30"``."""
    # bool is an int subclass but never a valid number here.
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str) and value.strip():
        try:
            return math.isfinite(float(value))
        except ValueError:
            return False
    return False


def _check_injection(name: str, value: object) -> None:
    if isinstance(value, str) and any(char in _INJECTION_CHARACTERS for char in value):
        raise ValidationError(f"Parameter {name} contains invalid characters")
