from __future__ import annotations

import pytest

from ops_console.audit.db import SqliteExecutionStore, SqliteStore
from ops_console.domain.executions import (
    CANCELLABLE_STATUSES,
    ExecutionContext,
    WorkflowExecution,
    WorkflowStatus,
)
from ops_console.domain.models import ContextType
from ops_console.engine.store import DuplicateRunError, InMemoryExecutionStore


def _execution(run_id: str, *, user: str = "user-1", started_at: str = "2026-01-01T00:00:00"):
    return WorkflowExecution(
        id=f"id-{run_id}",
        run_id=run_id,
        action_id="drop-database",
        action_name="Drop Database",
        status=WorkflowStatus.PENDING_APPROVAL,
        params={"database": "test_db", "confirmName": "test_db"},
        reasoning="cleanup of temp database",
        executed_by=user,
        executed_by_username=user.upper(),
        started_at=started_at,
        requires_approval=True,
        output=["[t] Workflow started: Drop Database"],
        context=ExecutionContext(
            incident_id="INC-1", context_type=ContextType.INFRASTRUCTURE, service_tags=("db",)
        ),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryExecutionStore()
        return
    sqlite_store = SqliteStore(str(tmp_path / "ledger.db"))
    yield SqliteExecutionStore(sqlite_store)
    sqlite_store.close()


def test_add_and_get_round_trip(store):
    store.add(_execution("run-1"))

    loaded = store.get("run-1")
    assert loaded == _execution("run-1")
    assert store.get("run-missing") is None


def test_duplicate_run_id_rejected(store):
    store.add(_execution("run-1"))
    with pytest.raises(DuplicateRunError):
        store.add(_execution("run-1"))


def test_get_returns_snapshot(store):
    store.add(_execution("run-1"))
    snapshot = store.get("run-1")
    snapshot.output.append("tampered")
    snapshot.status = WorkflowStatus.COMPLETED

    loaded = store.get("run-1")
    assert loaded.output == ["[t] Workflow started: Drop Database"]
    assert loaded.status is WorkflowStatus.PENDING_APPROVAL


def test_transition_is_compare_and_set(store):
    store.add(_execution("run-1"))

    assert store.transition(
        "run-1",
        {WorkflowStatus.PENDING_APPROVAL},
        WorkflowStatus.APPROVED,
        approved_by="admin-1",
        approved_at="2026-01-01T00:01:00",
    )
    assert not store.transition("run-1", {WorkflowStatus.PENDING_APPROVAL}, WorkflowStatus.REJECTED)
    assert not store.transition("run-missing", CANCELLABLE_STATUSES, WorkflowStatus.CANCELLED)

    loaded = store.get("run-1")
    assert loaded.status is WorkflowStatus.APPROVED
    assert loaded.approved_by == "admin-1"


def test_transition_rejects_unknown_fields(store):
    store.add(_execution("run-1"))
    with pytest.raises(ValueError, match="Unsupported transition fields: status"):
        store.transition(
            "run-1", CANCELLABLE_STATUSES, WorkflowStatus.CANCELLED, status="completed"
        )


def test_append_output_keeps_order(store):
    store.add(_execution("run-1"))
    for index in range(5):
        store.append_output("run-1", f"line {index}")
    store.append_output("run-missing", "ignored")

    assert store.get("run-1").output[1:] == [f"line {i}" for i in range(5)]


def test_list_views(store):
    store.add(_execution("run-1", user="u1", started_at="2026-01-01T00:00:01"))
    store.add(_execution("run-2", user="u2", started_at="2026-01-01T00:00:02"))
    store.add(_execution("run-3", user="u1", started_at="2026-01-01T00:00:03"))
    store.transition("run-2", CANCELLABLE_STATUSES, WorkflowStatus.CANCELLED)

    assert {e.run_id for e in store.list_pending_approvals()} == {"run-1", "run-3"}
    assert {e.run_id for e in store.list_by_user("u1")} == {"run-1", "run-3"}
    assert [e.run_id for e in store.recent(limit=2)] == ["run-3", "run-2"]

    store.clear()
    assert store.recent() == []
