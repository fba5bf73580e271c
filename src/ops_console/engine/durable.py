"""Adapter for running actions on a remote durable workflow runtime.

The runtime is reached through a small HTTP workflow gateway. Runs started
here are mirrored into the local execution ledger so read views keep working;
the remote runtime stays authoritative for status.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

import httpx

from ops_console.approvals.models import ApprovalSignalPayload
from ops_console.domain.executions import (
    CANCELLABLE_STATUSES,
    WorkflowExecution,
    WorkflowProgress,
    WorkflowStartResult,
    WorkflowStatus,
)
from ops_console.domain.models import Action
from ops_console.domain.requests import ExecuteActionRequest
from ops_console.engine.store import ExecutionStore
from ops_console.engine.workflow_engine import add_with_fresh_run_id, format_output_line
from ops_console.errors import DurableRuntimeError
from ops_console.utils.masking import sanitize_log_value
from ops_console.utils.time import utc_now_iso
from ops_console.validation.params import validate_params

logger = logging.getLogger(__name__)

RUN_ID_PREFIX = "temporal"

REMOTE_STATUS_MAP: dict[str, WorkflowStatus] = {
    "RUNNING": WorkflowStatus.RUNNING,
    "COMPLETED": WorkflowStatus.COMPLETED,
    "FAILED": WorkflowStatus.FAILED,
    "TIMED_OUT": WorkflowStatus.FAILED,
    "CANCELED": WorkflowStatus.CANCELLED,
    "TERMINATED": WorkflowStatus.CANCELLED,
}

APPROVAL_PENDING = "pending"


def map_remote_status(remote_status: str, approval_state: str | None = None) -> WorkflowStatus:
    """Translate a remote execution status to the local status enum.

    A running remote workflow parked at its approval gate reports as
    ``pending_approval``.
    """
    status = REMOTE_STATUS_MAP.get(remote_status.upper())
    if status is None:
        raise DurableRuntimeError(f"Unknown remote workflow status: {remote_status}")
    if status is WorkflowStatus.RUNNING and approval_state == APPROVAL_PENDING:
        return WorkflowStatus.PENDING_APPROVAL
    return status


class DurableWorkflowClient(Protocol):
    async def start(
        self,
        workflow_type: str,
        workflow_id: str,
        args: dict[str, Any],
        memo: dict[str, Any],
    ) -> None: ...

    async def describe(self, workflow_id: str) -> dict[str, Any] | None: ...

    async def query_approval_state(self, workflow_id: str) -> str | None: ...

    async def signal_approval(self, workflow_id: str, payload: dict[str, Any]) -> None: ...

    async def terminate(self, workflow_id: str) -> bool: ...


class HttpDurableWorkflowClient:
    """``DurableWorkflowClient`` speaking to the workflow gateway over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        namespace: str = "default",
        task_queue: str = "ops-console",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._namespace = namespace
        self._task_queue = task_queue
        self._timeout = timeout_seconds
        self._transport = transport

    async def start(
        self,
        workflow_type: str,
        workflow_id: str,
        args: dict[str, Any],
        memo: dict[str, Any],
    ) -> None:
        await self._request(
            "POST",
            "/workflows/start",
            json={
                "namespace": self._namespace,
                "taskQueue": self._task_queue,
                "workflowType": workflow_type,
                "workflowId": workflow_id,
                "args": [args],
                "memo": memo,
            },
        )

    async def describe(self, workflow_id: str) -> dict[str, Any] | None:
        response = await self._request("GET", f"/workflows/{workflow_id}", allow_not_found=True)
        if response is None:
            return None
        return _json_object(response)

    async def query_approval_state(self, workflow_id: str) -> str | None:
        response = await self._request(
            "GET", f"/workflows/{workflow_id}/approval", allow_not_found=True
        )
        if response is None:
            return None
        status = _json_object(response).get("status")
        return status if isinstance(status, str) else None

    async def signal_approval(self, workflow_id: str, payload: dict[str, Any]) -> None:
        await self._request("POST", f"/workflows/{workflow_id}/approval", json=payload)

    async def terminate(self, workflow_id: str) -> bool:
        response = await self._request(
            "POST", f"/workflows/{workflow_id}/cancel", allow_not_found=True
        )
        return response is not None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(
                    method,
                    path,
                    json=json,
                    params={"namespace": self._namespace},
                )
            except httpx.HTTPError as exc:
                raise DurableRuntimeError(f"Durable runtime request failed: {exc}") from exc

        if response.status_code == 404 and allow_not_found:
            return None
        if response.status_code >= 400:
            raise DurableRuntimeError(
                f"Durable runtime returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
            )
        return response


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise DurableRuntimeError("Durable runtime returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise DurableRuntimeError("Durable runtime returned a non-object response")
    return data


class DurableWorkflowEngine:
    """Runs actions as remote durable workflows.

    Parameter validation and the risk gate match the local engine; the remote
    workflow itself waits for the approval signal.
    """

    def __init__(self, client: DurableWorkflowClient, store: ExecutionStore) -> None:
        self._client = client
        self._store = store

    @property
    def store(self) -> ExecutionStore:
        return self._store

    async def start_workflow(
        self,
        action: Action,
        request: ExecuteActionRequest,
        caller_id: str,
        caller_name: str,
    ) -> WorkflowStartResult:
        validate_params(action.required_params, request.params)

        requires_approval = action.requires_approval
        status = WorkflowStatus.PENDING_APPROVAL if requires_approval else WorkflowStatus.RUNNING
        context = request.context.to_context() if request.context else None

        # The ledger row claims the run id before the remote run exists.
        run_id = add_with_fresh_run_id(
            self._store,
            WorkflowExecution(
                id=str(uuid.uuid4()),
                run_id="",
                action_id=action.id,
                action_name=action.name,
                status=status,
                params=dict(request.params),
                reasoning=request.reasoning,
                executed_by=caller_id,
                executed_by_username=caller_name,
                started_at=utc_now_iso(),
                requires_approval=requires_approval,
                output=[
                    format_output_line(f"Workflow started: {action.name}"),
                    format_output_line(f"Initiated by: {caller_name}"),
                ],
                context=context,
            ),
            RUN_ID_PREFIX,
        )

        try:
            await self._client.start(
                workflow_type=action.workflow_id or action.id,
                workflow_id=run_id,
                args={
                    "actionId": action.id,
                    "params": dict(request.params),
                    "reasoning": request.reasoning,
                    "riskLevel": action.risk_level.value,
                    "requiresApproval": requires_approval,
                    "context": context.to_dict() if context else None,
                },
                memo={"executedBy": caller_id, "executedByUsername": caller_name},
            )
        except DurableRuntimeError as exc:
            logger.error("Durable workflow %s failed to start: %s", run_id, exc)
            if self._store.transition(
                run_id,
                CANCELLABLE_STATUSES,
                WorkflowStatus.FAILED,
                completed_at=utc_now_iso(),
                error=str(exc),
            ):
                self._store.append_output(run_id, format_output_line(f"Workflow failed: {exc}"))
            raise

        logger.info(
            "Started durable workflow %s (%s) for %s",
            run_id,
            action.workflow_id or action.id,
            sanitize_log_value(caller_id),
        )
        return WorkflowStartResult(
            run_id=run_id, status=status, requires_approval=requires_approval
        )

    async def get_workflow_status(self, run_id: str) -> WorkflowProgress | None:
        description = await self._client.describe(run_id)
        if description is None:
            return None

        remote_status = str(description.get("status", ""))
        approval_state = None
        if remote_status.upper() == "RUNNING":
            approval_state = await self._client.query_approval_state(run_id)
        status = map_remote_status(remote_status, approval_state)
        self._sync_ledger(run_id, status, description.get("error"))

        output = description.get("output")
        if isinstance(output, list):
            lines = tuple(str(line) for line in output)
        else:
            execution = self._store.get(run_id)
            lines = tuple(execution.output) if execution else ()
        error = description.get("error")
        return WorkflowProgress(
            run_id=run_id,
            status=status,
            output=lines,
            error=str(error) if error else None,
        )

    def get_execution(self, run_id: str) -> WorkflowExecution | None:
        return self._store.get(run_id)

    async def approve_workflow(
        self,
        run_id: str,
        approver_id: str,
        payload: ApprovalSignalPayload | None = None,
    ) -> bool:
        signal = payload or ApprovalSignalPayload(decision="approved", approver_id=approver_id)
        return await self._deliver_decision(run_id, signal)

    async def reject_workflow(
        self,
        run_id: str,
        approver_id: str,
        reason: str | None = None,
        payload: ApprovalSignalPayload | None = None,
    ) -> bool:
        signal = payload or ApprovalSignalPayload(
            decision="rejected", approver_id=approver_id, reason=reason
        )
        return await self._deliver_decision(run_id, signal)

    async def cancel_workflow(self, run_id: str) -> bool:
        progress = await self.get_workflow_status(run_id)
        if progress is None or progress.status not in CANCELLABLE_STATUSES:
            return False
        if not await self._client.terminate(run_id):
            return False
        self._store.transition(
            run_id, CANCELLABLE_STATUSES, WorkflowStatus.CANCELLED, completed_at=utc_now_iso()
        )
        self._store.append_output(run_id, format_output_line("Workflow cancelled"))
        logger.info("Durable workflow %s cancelled", run_id)
        return True

    def pending_approvals(self) -> list[WorkflowExecution]:
        return self._store.list_pending_approvals()

    def executions_by_user(self, user_id: str) -> list[WorkflowExecution]:
        return self._store.list_by_user(user_id)

    def recent_executions(self, limit: int = 20) -> list[WorkflowExecution]:
        return self._store.recent(limit)

    async def _deliver_decision(self, run_id: str, signal: ApprovalSignalPayload) -> bool:
        progress = await self.get_workflow_status(run_id)
        if progress is None or progress.status is not WorkflowStatus.PENDING_APPROVAL:
            return False

        await self._client.signal_approval(run_id, signal.to_wire())
        logger.info(
            "Delivered %s signal to %s from %s",
            signal.decision,
            run_id,
            sanitize_log_value(signal.approver_id),
        )

        if signal.decision == "approved":
            self._store.transition(
                run_id,
                {WorkflowStatus.PENDING_APPROVAL},
                WorkflowStatus.RUNNING,
                approved_by=signal.approver_id,
                approved_at=signal.timestamp,
            )
            self._store.append_output(
                run_id, format_output_line(f"Approved by: {signal.approver_id}")
            )
        else:
            self._store.transition(
                run_id,
                {WorkflowStatus.PENDING_APPROVAL},
                WorkflowStatus.REJECTED,
                completed_at=utc_now_iso(),
            )
            self._store.append_output(
                run_id, format_output_line(f"Rejected by: {signal.approver_id}")
            )
            if signal.reason:
                self._store.append_output(run_id, format_output_line(f"Reason: {signal.reason}"))
        return True

    def _sync_ledger(self, run_id: str, status: WorkflowStatus, error: object) -> None:
        execution = self._store.get(run_id)
        if execution is None or execution.status is status or execution.status.is_terminal:
            return
        fields: dict[str, str | None] = {}
        if status.is_terminal:
            fields["completed_at"] = utc_now_iso()
        if status is WorkflowStatus.FAILED and error:
            fields["error"] = str(error)
        self._store.transition(run_id, {execution.status}, status, **fields)
