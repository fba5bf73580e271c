"""Execution ledger storage."""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Iterable
from typing import Protocol

from ops_console.domain.executions import WorkflowExecution, WorkflowStatus

# Fields a status transition may set alongside the new status.
TRANSITION_FIELDS = frozenset({"completed_at", "approved_by", "approved_at", "error"})


class DuplicateRunError(ValueError):
    """A run id was added to the ledger twice."""


class ExecutionStore(Protocol):
    def add(self, execution: WorkflowExecution) -> None: ...

    def get(self, run_id: str) -> WorkflowExecution | None: ...

    def transition(
        self,
        run_id: str,
        from_statuses: Iterable[WorkflowStatus],
        to_status: WorkflowStatus,
        **fields: str | None,
    ) -> bool: ...

    def append_output(self, run_id: str, line: str) -> None: ...

    def list_pending_approvals(self) -> list[WorkflowExecution]: ...

    def list_by_user(self, user_id: str) -> list[WorkflowExecution]: ...

    def recent(self, limit: int = 20) -> list[WorkflowExecution]: ...

    def clear(self) -> None: ...


def check_transition_fields(fields: dict[str, str | None]) -> None:
    unknown = set(fields) - TRANSITION_FIELDS
    if unknown:
        raise ValueError(f"Unsupported transition fields: {', '.join(sorted(unknown))}")


def _snapshot(execution: WorkflowExecution) -> WorkflowExecution:
    return dataclasses.replace(
        execution,
        output=list(execution.output),
        params=dict(execution.params),
    )


class InMemoryExecutionStore:
    """Dict-backed ledger guarded by a lock.

    Reads return snapshots; callers never hold a reference to the stored
    record, so every mutation goes through ``transition``/``append_output``.
    """

    def __init__(self) -> None:
        self._executions: dict[str, WorkflowExecution] = {}
        self._lock = threading.Lock()

    def add(self, execution: WorkflowExecution) -> None:
        with self._lock:
            if execution.run_id in self._executions:
                raise DuplicateRunError(f"Run id already exists: {execution.run_id}")
            self._executions[execution.run_id] = _snapshot(execution)

    def get(self, run_id: str) -> WorkflowExecution | None:
        with self._lock:
            execution = self._executions.get(run_id)
            return _snapshot(execution) if execution is not None else None

    def transition(
        self,
        run_id: str,
        from_statuses: Iterable[WorkflowStatus],
        to_status: WorkflowStatus,
        **fields: str | None,
    ) -> bool:
        """Atomically move a run to ``to_status`` if it is in ``from_statuses``.

        Returns True if the caller won the transition, False otherwise.
        """
        check_transition_fields(fields)
        allowed = frozenset(from_statuses)
        with self._lock:
            execution = self._executions.get(run_id)
            if execution is None or execution.status not in allowed:
                return False
            execution.status = to_status
            for name, value in fields.items():
                setattr(execution, name, value)
            return True

    def append_output(self, run_id: str, line: str) -> None:
        with self._lock:
            execution = self._executions.get(run_id)
            if execution is not None:
                execution.output.append(line)

    def list_pending_approvals(self) -> list[WorkflowExecution]:
        with self._lock:
            return [
                _snapshot(e)
                for e in self._executions.values()
                if e.status is WorkflowStatus.PENDING_APPROVAL
            ]

    def list_by_user(self, user_id: str) -> list[WorkflowExecution]:
        with self._lock:
            return [_snapshot(e) for e in self._executions.values() if e.executed_by == user_id]

    def recent(self, limit: int = 20) -> list[WorkflowExecution]:
        with self._lock:
            ordered = sorted(
                self._executions.values(), key=lambda e: e.started_at, reverse=True
            )
            return [_snapshot(e) for e in ordered[:limit]]

    def clear(self) -> None:
        with self._lock:
            self._executions.clear()
