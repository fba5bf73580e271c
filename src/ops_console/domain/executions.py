"""Execution ledger records and engine results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ops_console.domain.models import ContextType


class WorkflowStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        WorkflowStatus.REJECTED,
        WorkflowStatus.COMPLETED,
        WorkflowStatus.FAILED,
        WorkflowStatus.CANCELLED,
    }
)

CANCELLABLE_STATUSES = frozenset(
    {
        WorkflowStatus.PENDING_APPROVAL,
        WorkflowStatus.APPROVED,
        WorkflowStatus.RUNNING,
    }
)


@dataclass(frozen=True)
class ExecutionContext:
    """Optional scoping of a run to the signal that triggered it."""

    event_id: str | None = None
    incident_id: str | None = None
    context_type: ContextType | None = None
    service_tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "event_id": self.event_id,
            "incident_id": self.incident_id,
            "context_type": self.context_type.value if self.context_type else None,
            "service_tags": list(self.service_tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ExecutionContext | None":
        if not data:
            return None
        context_type = data.get("context_type")
        return cls(
            event_id=data.get("event_id"),
            incident_id=data.get("incident_id"),
            context_type=ContextType(context_type) if context_type else None,
            service_tags=tuple(data.get("service_tags") or ()),
        )


@dataclass
class WorkflowExecution:
    id: str
    run_id: str
    action_id: str
    action_name: str
    status: WorkflowStatus
    params: dict[str, Any]
    reasoning: str
    executed_by: str
    executed_by_username: str
    started_at: str
    requires_approval: bool
    output: list[str] = field(default_factory=list)
    completed_at: str | None = None
    approved_by: str | None = None
    approved_at: str | None = None
    error: str | None = None
    context: ExecutionContext | None = None


@dataclass(frozen=True)
class WorkflowStartResult:
    run_id: str
    status: WorkflowStatus
    requires_approval: bool


@dataclass(frozen=True)
class WorkflowProgress:
    run_id: str
    status: WorkflowStatus
    output: tuple[str, ...]
    error: str | None = None

    @classmethod
    def from_execution(cls, execution: WorkflowExecution) -> "WorkflowProgress":
        return cls(
            run_id=execution.run_id,
            status=execution.status,
            output=tuple(execution.output),
            error=execution.error,
        )
