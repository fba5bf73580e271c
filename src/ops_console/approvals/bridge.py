"""Delivery of approval decisions from external approvers to runs."""

from __future__ import annotations

import logging
from typing import Protocol

from ops_console.approvals.models import (
    ApprovalDecision,
    ApprovalSignalPayload,
    ApprovalSource,
    ApproverPolicy,
)
from ops_console.approvals.policy import build_signal_payload
from ops_console.audit.models import APPROVAL_DECISION, AuditEvent
from ops_console.audit.sink import AuditSink
from ops_console.engine.durable import DurableWorkflowEngine
from ops_console.engine.workflow_engine import ExecutionWorkflowEngine
from ops_console.policy.permissions import PermissionModel
from ops_console.utils.masking import sanitize_log_value

logger = logging.getLogger(__name__)


class ApprovalDelivery(Protocol):
    async def deliver(self, run_id: str, payload: ApprovalSignalPayload) -> bool: ...


class LocalApprovalDelivery:
    """Applies decisions to the in-process engine.

    The approver must hold at least one role that may approve; unmapped or
    under-privileged approvers are refused.
    """

    def __init__(self, engine: ExecutionWorkflowEngine, permissions: PermissionModel) -> None:
        self._engine = engine
        self._permissions = permissions

    async def deliver(self, run_id: str, payload: ApprovalSignalPayload) -> bool:
        if not any(self._permissions.can_approve(role) for role in payload.approver_roles):
            logger.warning(
                "Approver %s holds no approving role; %s decision for %s refused",
                sanitize_log_value(payload.approver_id),
                payload.decision,
                run_id,
            )
            return False
        if payload.decision == "approved":
            return self._engine.approve_workflow(run_id, payload.approver_id)
        return self._engine.reject_workflow(run_id, payload.approver_id, payload.reason)


class RemoteApprovalDelivery:
    """Forwards decisions as approval signals to the durable runtime.

    The remote workflow checks ``approver_roles`` against its own gate.
    """

    def __init__(self, engine: DurableWorkflowEngine) -> None:
        self._engine = engine

    async def deliver(self, run_id: str, payload: ApprovalSignalPayload) -> bool:
        if payload.decision == "approved":
            return await self._engine.approve_workflow(
                run_id, payload.approver_id, payload=payload
            )
        return await self._engine.reject_workflow(
            run_id, payload.approver_id, payload.reason, payload=payload
        )


class ApprovalSignalBridge:
    def __init__(
        self,
        policy: ApproverPolicy,
        delivery: ApprovalDelivery,
        audit_sink: AuditSink,
    ) -> None:
        self._policy = policy
        self._delivery = delivery
        self._audit = audit_sink

    @property
    def policy(self) -> ApproverPolicy:
        return self._policy

    async def deliver(
        self,
        run_id: str,
        decision: ApprovalDecision,
        external_user_id: str,
        *,
        external_user_name: str | None = None,
        external_username: str | None = None,
        reason: str | None = None,
        source: ApprovalSource = "slack",
    ) -> bool:
        payload = build_signal_payload(
            decision,
            external_user_id,
            policy=self._policy,
            external_user_name=external_user_name,
            external_username=external_username,
            reason=reason,
            source=source,
        )
        delivered = await self._delivery.deliver(run_id, payload)

        self._audit.record(
            AuditEvent(
                source=payload.source,
                severity="info" if delivered else "warning",
                message=(
                    f"Approval {payload.decision} for {run_id} by "
                    f"{payload.approver_name or payload.approver_id}"
                    + ("" if delivered else " (not applied)")
                ),
                event_type=APPROVAL_DECISION,
                payload={
                    "runId": run_id,
                    "decision": payload.decision,
                    "approverRoles": list(payload.approver_roles),
                    "externalUserId": external_user_id,
                    "reason": payload.reason,
                    "delivered": delivered,
                },
                user_id=payload.approver_id,
                username=payload.approver_name,
            )
        )
        return delivered

