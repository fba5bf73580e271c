"""SQLite access layer for the execution ledger and audit events."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Mapping, Sequence

from ops_console.audit.models import AuditEvent
from ops_console.domain.executions import ExecutionContext, WorkflowExecution, WorkflowStatus
from ops_console.engine.store import DuplicateRunError, check_transition_fields
from ops_console.utils.serialization import dumps

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


class SqliteStore:
    def __init__(self, path: str, wal: bool = True) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS executions (
                run_id TEXT PRIMARY KEY,
                id TEXT NOT NULL,
                action_id TEXT NOT NULL,
                action_name TEXT NOT NULL,
                status TEXT NOT NULL,
                params TEXT NOT NULL,
                reasoning TEXT NOT NULL,
                executed_by TEXT NOT NULL,
                executed_by_username TEXT NOT NULL,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                approved_by TEXT,
                approved_at TEXT,
                error TEXT,
                context TEXT,
                requires_approval INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS execution_output (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL,
                line TEXT NOT NULL,
                FOREIGN KEY(run_id) REFERENCES executions(run_id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS audit_events (
                id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,
                source TEXT NOT NULL,
                severity TEXT NOT NULL,
                event_type TEXT NOT NULL,
                message TEXT NOT NULL,
                payload TEXT NOT NULL,
                user_id TEXT,
                username TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_executions_status ON executions(status);
            CREATE INDEX IF NOT EXISTS idx_executions_executed_by ON executions(executed_by);
            CREATE INDEX IF NOT EXISTS idx_executions_started_at ON executions(started_at);
            CREATE INDEX IF NOT EXISTS idx_execution_output_run_id ON execution_output(run_id);
            CREATE INDEX IF NOT EXISTS idx_audit_events_type ON audit_events(event_type);
            """
        )
        self._conn.commit()

    def execute(self, query: str, params: _SqlParams) -> int:
        with self._lock:
            cursor = self._conn.execute(query, params)
            self._conn.commit()
            return cursor.rowcount

    def fetch_one(self, query: str, params: _SqlParams) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query: str, params: _SqlParams) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def insert_execution(self, execution: WorkflowExecution) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO executions (
                        run_id, id, action_id, action_name, status, params, reasoning,
                        executed_by, executed_by_username, started_at, completed_at,
                        approved_by, approved_at, error, context, requires_approval
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        execution.run_id,
                        execution.id,
                        execution.action_id,
                        execution.action_name,
                        execution.status.value,
                        dumps(execution.params),
                        execution.reasoning,
                        execution.executed_by,
                        execution.executed_by_username,
                        execution.started_at,
                        execution.completed_at,
                        execution.approved_by,
                        execution.approved_at,
                        execution.error,
                        dumps(execution.context.to_dict()) if execution.context else None,
                        int(execution.requires_approval),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise DuplicateRunError(f"Run id already exists: {execution.run_id}") from exc
            self._conn.executemany(
                "INSERT INTO execution_output (run_id, line) VALUES (?, ?)",
                [(execution.run_id, line) for line in execution.output],
            )
            self._conn.commit()

    def get_execution(self, run_id: str) -> WorkflowExecution | None:
        row = self.fetch_one("SELECT * FROM executions WHERE run_id = ?", (run_id,))
        if row is None:
            return None
        return self._row_to_execution(row)

    def compare_and_set_status(
        self,
        run_id: str,
        from_statuses: Iterable[WorkflowStatus],
        to_status: WorkflowStatus,
        fields: dict[str, str | None],
    ) -> bool:
        """Atomically move a run to ``to_status`` if it is in ``from_statuses``.

        Returns True if exactly one row was updated (i.e. the caller won the
        race), False otherwise.
        """
        check_transition_fields(fields)
        allowed = [status.value for status in from_statuses]
        if not allowed:
            return False

        # Column names come from the fixed TRANSITION_FIELDS allowlist.
        assignments = ["status = ?", *(f"{name} = ?" for name in fields)]
        placeholders = ",".join("?" for _ in allowed)
        query = (
            f"UPDATE executions SET {', '.join(assignments)} "
            f"WHERE run_id = ? AND status IN ({placeholders})"
        )
        params: list[_SqlValue] = [to_status.value, *fields.values(), run_id, *allowed]
        return self.execute(query, params) == 1

    def append_output(self, run_id: str, line: str) -> None:
        with self._lock:
            exists = self._conn.execute(
                "SELECT 1 FROM executions WHERE run_id = ?", (run_id,)
            ).fetchone()
            if exists is None:
                return
            self._conn.execute(
                "INSERT INTO execution_output (run_id, line) VALUES (?, ?)", (run_id, line)
            )
            self._conn.commit()

    def list_executions(
        self,
        where: str = "",
        params: _SqlParams = (),
        limit: int | None = None,
    ) -> list[WorkflowExecution]:
        query = "SELECT * FROM executions"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY started_at DESC"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return [self._row_to_execution(row) for row in self.fetch_all(query, params)]

    def clear_executions(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM execution_output")
            self._conn.execute("DELETE FROM executions")
            self._conn.commit()

    def insert_audit_event(self, event: AuditEvent) -> None:
        self.execute(
            """
            INSERT INTO audit_events (
                id, timestamp, source, severity, event_type, message, payload,
                user_id, username
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.timestamp,
                event.source,
                event.severity,
                event.event_type,
                event.message,
                dumps(event.payload),
                event.user_id,
                event.username,
            ),
        )

    def list_audit_events(self, event_type: str | None = None) -> list[AuditEvent]:
        if event_type is None:
            rows = self.fetch_all("SELECT * FROM audit_events ORDER BY timestamp", ())
        else:
            rows = self.fetch_all(
                "SELECT * FROM audit_events WHERE event_type = ? ORDER BY timestamp",
                (event_type,),
            )
        events = []
        for row in rows:
            data = dict(row)
            data["payload"] = json.loads(data["payload"])
            events.append(AuditEvent(**data))
        return events

    def _row_to_execution(self, row: sqlite3.Row) -> WorkflowExecution:
        data = dict(row)
        lines = self.fetch_all(
            "SELECT line FROM execution_output WHERE run_id = ? ORDER BY seq",
            (data["run_id"],),
        )
        context = json.loads(data["context"]) if data["context"] else None
        return WorkflowExecution(
            id=data["id"],
            run_id=data["run_id"],
            action_id=data["action_id"],
            action_name=data["action_name"],
            status=WorkflowStatus(data["status"]),
            params=json.loads(data["params"]),
            reasoning=data["reasoning"],
            executed_by=data["executed_by"],
            executed_by_username=data["executed_by_username"],
            started_at=data["started_at"],
            requires_approval=bool(data["requires_approval"]),
            output=[line["line"] for line in lines],
            completed_at=data["completed_at"],
            approved_by=data["approved_by"],
            approved_at=data["approved_at"],
            error=data["error"],
            context=ExecutionContext.from_dict(context),
        )


class SqliteExecutionStore:
    """``ExecutionStore`` backed by a shared ``SqliteStore``."""

    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def add(self, execution: WorkflowExecution) -> None:
        self._store.insert_execution(execution)

    def get(self, run_id: str) -> WorkflowExecution | None:
        return self._store.get_execution(run_id)

    def transition(
        self,
        run_id: str,
        from_statuses: Iterable[WorkflowStatus],
        to_status: WorkflowStatus,
        **fields: str | None,
    ) -> bool:
        return self._store.compare_and_set_status(run_id, from_statuses, to_status, fields)

    def append_output(self, run_id: str, line: str) -> None:
        self._store.append_output(run_id, line)

    def list_pending_approvals(self) -> list[WorkflowExecution]:
        return self._store.list_executions(
            "status = ?", (WorkflowStatus.PENDING_APPROVAL.value,)
        )

    def list_by_user(self, user_id: str) -> list[WorkflowExecution]:
        return self._store.list_executions("executed_by = ?", (user_id,))

    def recent(self, limit: int = 20) -> list[WorkflowExecution]:
        return self._store.list_executions(limit=limit)

    def clear(self) -> None:
        self._store.clear_executions()


class SqliteAuditSink:
    def __init__(self, store: SqliteStore) -> None:
        self._store = store

    def record(self, event: AuditEvent) -> None:
        self._store.insert_audit_event(event)

    @property
    def events(self) -> list[AuditEvent]:
        return self._store.list_audit_events()
