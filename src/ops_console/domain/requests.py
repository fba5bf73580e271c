"""Boundary request models."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ops_console.domain.executions import ExecutionContext
from ops_console.domain.models import ContextType
from ops_console.errors import ValidationError

_ModelT = TypeVar("_ModelT", bound=BaseModel)

MIN_REASONING_LENGTH = 10


class ExecutionContextInput(BaseModel):
    event_id: str | None = None
    incident_id: str | None = None
    context_type: ContextType | None = None
    service_tags: list[str] = Field(default_factory=list)

    def to_context(self) -> ExecutionContext:
        return ExecutionContext(
            event_id=self.event_id,
            incident_id=self.incident_id,
            context_type=self.context_type,
            service_tags=tuple(self.service_tags),
        )


class ExecuteActionRequest(BaseModel):
    action_id: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = Field(min_length=MIN_REASONING_LENGTH)
    context: ExecutionContextInput | None = None


class QueryExecutionRequest(BaseModel):
    template_id: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


def parse_request(model: type[_ModelT], data: dict[str, object]) -> _ModelT:
    """Validate boundary input, reporting only the first violation."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "request"
        if location == "reasoning" and first.get("type") == "string_too_short":
            raise ValidationError(
                f"Reasoning must be at least {MIN_REASONING_LENGTH} characters"
            ) from exc
        raise ValidationError(f"Invalid {location}: {first.get('msg', 'invalid value')}") from exc
