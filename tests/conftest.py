from __future__ import annotations

import pytest

from ops_console import config
from ops_console.approvals.bridge import LocalApprovalDelivery
from ops_console.audit.sink import InMemoryAuditSink
from ops_console.catalog.catalog import ActionCatalog, QueryTemplateCatalog
from ops_console.catalog.defaults import (
    DEFAULT_ACTIONS,
    DEFAULT_PERMISSIONS,
    DEFAULT_QUERY_TEMPLATES,
)
from ops_console.engine.phases import SimulatedExecutor
from ops_console.engine.store import InMemoryExecutionStore
from ops_console.engine.workflow_engine import ExecutionWorkflowEngine
from ops_console.policy.permissions import PermissionModel
from ops_console.service import OperationsConsole
from ops_console.sql.runner import SqlTemplateRunner


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def permissions() -> PermissionModel:
    return PermissionModel(DEFAULT_PERMISSIONS)


@pytest.fixture
def actions() -> ActionCatalog:
    return ActionCatalog(DEFAULT_ACTIONS)


@pytest.fixture
def templates() -> QueryTemplateCatalog:
    return QueryTemplateCatalog(DEFAULT_QUERY_TEMPLATES)


@pytest.fixture
def execution_store() -> InMemoryExecutionStore:
    return InMemoryExecutionStore()


@pytest.fixture
def engine(execution_store):
    workflow_engine = ExecutionWorkflowEngine(execution_store, executor=SimulatedExecutor(0))
    yield workflow_engine
    workflow_engine.close()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def runner(templates, audit_sink) -> SqlTemplateRunner:
    return SqlTemplateRunner(templates, audit_sink)


@pytest.fixture
def console(permissions, actions, engine, runner, audit_sink) -> OperationsConsole:
    return OperationsConsole(
        permissions=permissions,
        actions=actions,
        engine=engine,
        delivery=LocalApprovalDelivery(engine, permissions),
        runner=runner,
        audit_sink=audit_sink,
    )
