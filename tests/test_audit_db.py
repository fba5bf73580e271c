import pytest

from ops_console.audit.db import SqliteAuditSink, SqliteStore
from ops_console.audit.models import QUERY_EXECUTED, AuditEvent


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "nested" / "audit.db")


@pytest.fixture
def store(db_path):
    sqlite_store = SqliteStore(db_path)
    yield sqlite_store
    sqlite_store.close()


def test_schema_created(store):
    tables = {
        row["name"]
        for row in store.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'", ())
    }
    assert {"executions", "execution_output", "audit_events"} <= tables


def test_audit_sink_persists_events(store):
    sink = SqliteAuditSink(store)
    event = AuditEvent(
        source="sql_runner",
        severity="low",
        message="SQL Query Executed: Query User by ID (1 rows, 0ms)",
        event_type=QUERY_EXECUTED,
        payload={"templateId": "query-user-by-id", "params": {"userId": "U001"}},
        user_id="user-1",
        username="alice",
    )
    sink.record(event)

    events = sink.events
    assert len(events) == 1
    assert events[0].id == event.id
    assert events[0].payload == {"templateId": "query-user-by-id", "params": {"userId": "U001"}}
    assert store.list_audit_events(QUERY_EXECUTED)[0].username == "alice"
    assert store.list_audit_events("other") == []


def test_close_is_idempotent(db_path):
    sqlite_store = SqliteStore(db_path, wal=False)
    sqlite_store.close()
    sqlite_store.close()


def test_in_memory_database():
    sqlite_store = SqliteStore(":memory:")
    assert sqlite_store.list_executions() == []
    sqlite_store.close()
