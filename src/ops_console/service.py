"""Operations console facade: the contract offered to the boundary layer."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ops_console.approvals.bridge import ApprovalDelivery
from ops_console.approvals.models import ApprovalDecision, ApprovalSignalPayload
from ops_console.audit.models import ACTION_REQUESTED, APPROVAL_DECISION, AuditEvent
from ops_console.audit.sink import AuditSink
from ops_console.catalog.catalog import ActionCatalog, CategorySummary
from ops_console.catalog.resolver import ActionResolver
from ops_console.domain.executions import (
    WorkflowExecution,
    WorkflowProgress,
    WorkflowStartResult,
)
from ops_console.domain.models import Action, ContextType, QueryTemplate, Role
from ops_console.domain.requests import (
    ExecuteActionRequest,
    QueryExecutionRequest,
    parse_request,
)
from ops_console.errors import NotFoundError, PermissionDeniedError
from ops_console.policy.permissions import PermissionModel
from ops_console.sql.models import QueryExecutionResult
from ops_console.sql.runner import SqlTemplateRunner
from ops_console.utils.masking import (
    mask_email_params,
    redact_sensitive_fields,
    sanitize_log_value,
)

logger = logging.getLogger(__name__)


class WorkflowEngine(Protocol):
    """Engine surface used by the console.

    Methods may be plain or coroutine functions; the local engine is
    synchronous while the durable engine awaits its runtime.
    """

    def start_workflow(
        self,
        action: Action,
        request: ExecuteActionRequest,
        caller_id: str,
        caller_name: str,
    ) -> Any: ...

    def get_workflow_status(self, run_id: str) -> Any: ...

    def cancel_workflow(self, run_id: str) -> Any: ...

    def pending_approvals(self) -> list[WorkflowExecution]: ...

    def executions_by_user(self, user_id: str) -> list[WorkflowExecution]: ...

    def recent_executions(self, limit: int = 20) -> list[WorkflowExecution]: ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class CatalogView:
    actions: list[Action]
    categories: list[CategorySummary]


class OperationsConsole:
    def __init__(
        self,
        *,
        permissions: PermissionModel,
        actions: ActionCatalog,
        engine: WorkflowEngine,
        delivery: ApprovalDelivery,
        runner: SqlTemplateRunner,
        audit_sink: AuditSink,
        resolver: ActionResolver | None = None,
    ) -> None:
        self._permissions = permissions
        self._actions = actions
        self._engine = engine
        self._delivery = delivery
        self._runner = runner
        self._audit = audit_sink
        self._resolver = resolver or ActionResolver(actions, permissions)

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    async def execute(
        self,
        action_id: str,
        params: Mapping[str, Any],
        reasoning: str,
        caller_id: str,
        caller_name: str,
        role: Role | str,
        context: Mapping[str, Any] | None = None,
    ) -> WorkflowStartResult:
        request = parse_request(
            ExecuteActionRequest,
            {
                "action_id": action_id,
                "params": dict(params),
                "reasoning": reasoning,
                "context": dict(context) if context is not None else None,
            },
        )

        action = self._actions.get(request.action_id)
        if action is None:
            raise NotFoundError(f"Action not found: {request.action_id}")
        if not self._permissions.can_execute_action(role, action):
            logger.warning(
                "Action %s denied for %s (role=%s)",
                action.id,
                sanitize_log_value(caller_id),
                sanitize_log_value(str(role)),
            )
            raise PermissionDeniedError("Insufficient permissions")

        result: WorkflowStartResult = await _resolve(
            self._engine.start_workflow(action, request, caller_id, caller_name)
        )

        self._audit.record(
            AuditEvent(
                source="console",
                severity="warning" if result.requires_approval else "info",
                message=f"Action requested: {action.name} ({result.run_id})",
                event_type=ACTION_REQUESTED,
                payload={
                    "runId": result.run_id,
                    "actionId": action.id,
                    "riskLevel": action.risk_level.value,
                    "status": result.status.value,
                    "requiresApproval": result.requires_approval,
                    "params": redact_sensitive_fields(mask_email_params(request.params)),
                    "reasoning": request.reasoning,
                    "context": request.context.model_dump(mode="json")
                    if request.context
                    else None,
                },
                user_id=caller_id,
                username=caller_name,
            )
        )
        return result

    async def status(self, run_id: str) -> WorkflowProgress | None:
        return await _resolve(self._engine.get_workflow_status(run_id))

    async def approve(
        self,
        run_id: str,
        approver_id: str,
        *,
        role: Role | str,
        approver_name: str | None = None,
    ) -> bool:
        return await self._decide(run_id, "approved", approver_id, role, approver_name, None)

    async def reject(
        self,
        run_id: str,
        approver_id: str,
        *,
        role: Role | str,
        reason: str | None = None,
        approver_name: str | None = None,
    ) -> bool:
        return await self._decide(run_id, "rejected", approver_id, role, approver_name, reason)

    async def cancel(self, run_id: str) -> bool:
        return await _resolve(self._engine.cancel_workflow(run_id))

    def query(
        self,
        template_id: str,
        params: Mapping[str, Any],
        caller_id: str,
        caller_name: str,
        role: Role | str,
    ) -> QueryExecutionResult:
        request = parse_request(
            QueryExecutionRequest, {"template_id": template_id, "params": dict(params)}
        )
        return self._runner.execute_query(request, caller_id, caller_name, role)

    def templates(self, role: Role | str) -> list[QueryTemplate]:
        return self._runner.get_templates(role)

    def catalog(self, role: Role | str) -> CatalogView:
        visible = self._actions.visible_to(role, self._permissions)
        return CatalogView(actions=visible, categories=self._actions.categories(visible))

    def suggest_actions(
        self,
        service_tags: Iterable[str],
        context_type: ContextType | str | None,
        role: Role | str,
    ) -> list[Action]:
        resolved_type = ContextType(context_type) if context_type else None
        return self._resolver.resolve_for_signal(service_tags, resolved_type, role)

    def pending_approvals(self, role: Role | str) -> list[WorkflowExecution]:
        if not self._permissions.can_approve(role):
            return []
        return self._engine.pending_approvals()

    def executions_for(self, user_id: str) -> list[WorkflowExecution]:
        return self._engine.executions_by_user(user_id)

    def recent_executions(self, limit: int = 20) -> list[WorkflowExecution]:
        return self._engine.recent_executions(limit)

    async def _decide(
        self,
        run_id: str,
        decision: ApprovalDecision,
        approver_id: str,
        role: Role | str,
        approver_name: str | None,
        reason: str | None,
    ) -> bool:
        resolved_role = Role.coerce(role)
        if resolved_role is None or not self._permissions.can_approve(resolved_role):
            raise PermissionDeniedError("Insufficient permissions to approve workflows")

        payload = ApprovalSignalPayload(
            decision=decision,
            approver_id=approver_id,
            approver_name=approver_name,
            approver_roles=[resolved_role.value],
            reason=reason,
            source="console",
        )
        applied = await self._delivery.deliver(run_id, payload)
        if applied:
            self._audit.record(
                AuditEvent(
                    source="console",
                    severity="info",
                    message=f"Approval {decision} for {run_id} by {approver_name or approver_id}",
                    event_type=APPROVAL_DECISION,
                    payload={
                        "runId": run_id,
                        "decision": decision,
                        "approverRoles": [resolved_role.value],
                        "reason": reason,
                    },
                    user_id=approver_id,
                    username=approver_name,
                )
            )
        return applied
